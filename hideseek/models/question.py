"""
Models / question.py
Rôle:
- Banque de questions des chercheurs (référentiel statique) et historique de la partie.

Notes:
- `asked_at` / `answered_at` sont persistés en ISO-8601 et relus en `datetime` par pydantic.
- Une question vetoée n'entre pas dans l'historique : elle redevient disponible.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .card import CardInstance
from .player import GameSize


class Question(BaseModel):
    id: str
    text: str
    category_id: str
    subcategory: Optional[str] = None
    available_in: List[GameSize] = Field(default_factory=lambda: list(GameSize))
    # question propre à la carte locale (Stillwater)
    is_custom: bool = False
    instructions: Optional[str] = None


class AskedQuestion(BaseModel):
    question_id: str
    category_id: str
    answer: str = ""
    asked_at: datetime
    answered_at: Optional[datetime] = None
    vetoed: bool = False


class PersistedQuestionState(BaseModel):
    asked_questions: List[AskedQuestion] = Field(default_factory=list)
    pending_question: Optional[AskedQuestion] = None


class CategoryStats(BaseModel):
    category_id: str
    name: str
    total: int
    available: int
    asked: int
    cards_draw: int
    cards_keep: int


class QuestionActionResult(BaseModel):
    """Résultat d'une action sur les questions; `cards_draw/keep` quand le cacheur pioche."""
    success: bool
    error: Optional[str] = None
    question_id: Optional[str] = None
    cards_draw: Optional[int] = None
    cards_keep: Optional[int] = None
    new_question_id: Optional[str] = None
    drawn_cards: Optional[List[CardInstance]] = None

    @classmethod
    def fail(cls, error: str) -> "QuestionActionResult":
        return cls(success=False, error=error)

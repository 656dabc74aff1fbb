"""
Module routes/questions.py
Rôle:
- Questions des chercheurs : banque filtrée (taille de partie, catégorie), statistiques,
  question en attente, réponse.

Notes:
- Poser une question démarre le compte à rebours de réponse; répondre fait piocher le
  cacheur (sélection « piocher X, garder Y » à trier via /cards/selection/keep).
- Veto / Randomize passent par les cartes : POST /cards/{instance_id}/veto|randomize.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from hideseek.deps.session import ensure_ok, get_game_session
from hideseek.services.game_session import GameSession

router = APIRouter(prefix="/questions", tags=["questions"])


class AnswerPayload(BaseModel):
    answer: str = Field("", max_length=500)


def _dump(result):
    return ensure_ok(result).model_dump(mode="json", exclude_none=True)


@router.get("")
async def list_questions(category_id: Optional[str] = None, game: GameSession = Depends(get_game_session)):
    questions = game.questions
    pending = questions.pending_question
    return {
        "available": [
            q.model_dump(mode="json")
            for q in questions.get_available_questions_for_size(game.session.game_size, category_id)
        ],
        "pending": pending.model_dump(mode="json") if pending else None,
        "asked": [q.model_dump(mode="json") for q in questions.asked_questions],
    }


@router.get("/stats")
async def category_stats(game: GameSession = Depends(get_game_session)):
    return [s.model_dump() for s in game.questions.get_category_stats()]


@router.get("/{question_id}")
async def get_question(question_id: str, game: GameSession = Depends(get_game_session)):
    question = game.questions.get_question(question_id)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")
    return question.model_dump(mode="json")


@router.post("/{question_id}/ask")
async def ask(question_id: str, game: GameSession = Depends(get_game_session)):
    if game.questions.get_question(question_id) is None:
        raise HTTPException(status_code=404, detail="Question not found")
    return _dump(game.ask_question(question_id))


@router.post("/{question_id}/answer")
async def answer(question_id: str, payload: AnswerPayload, game: GameSession = Depends(get_game_session)):
    return _dump(game.answer_question(question_id, payload.answer))

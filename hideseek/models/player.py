"""
Models / player.py
Rôle:
- Définir les joueurs, les phases de partie et l'état de session persistant.

Champs (SessionState):
- phase: phase courante (voir `GamePhase`).
- players: liste ordonnée (ordre d'inscription = ordre de passage).
- current_hider_id: joueur en train de se cacher (None hors round).
- round_number: 0 avant le premier round, +1 à chaque start_round.
- is_paused: pause globale, orthogonale à la phase.
- game_size: taille de partie (small/medium/large), pilote les barèmes.
- hiding_period_override_ms: durée ponctuelle accordée par le powerup Move.
- move_active: True entre l'octroi d'un Move et la reprise de la recherche.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class GamePhase(str, Enum):
    SETUP = "setup"
    HIDING_PERIOD = "hiding-period"
    SEEKING = "seeking"
    END_GAME = "end-game"
    ROUND_COMPLETE = "round-complete"
    GAME_OVER = "game-over"


class GameSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Player(BaseModel):
    """Joueur inscrit; seul `end_round` modifie son temps cumulé."""
    id: str
    name: str
    total_hiding_time_ms: int = 0
    has_been_hider: bool = False


class SessionState(BaseModel):
    phase: GamePhase = GamePhase.SETUP
    players: List[Player] = Field(default_factory=list)
    current_hider_id: Optional[str] = None
    round_number: int = 0
    is_paused: bool = False
    game_size: GameSize = GameSize.SMALL
    hiding_period_override_ms: Optional[int] = None
    move_active: bool = False


class ActionResult(BaseModel):
    """Résultat d'une commande de phase (jamais d'exception pour un mauvais usage)."""
    success: bool
    error: Optional[str] = None
    player_id: Optional[str] = None

    @classmethod
    def ok(cls, player_id: Optional[str] = None) -> "ActionResult":
        return cls(success=True, player_id=player_id)

    @classmethod
    def fail(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)


class RoundSummary(BaseModel):
    """Bilan d'un round clôturé : chronomètre + bonus (cartes en main, pièges déclenchés)."""
    round_number: int
    hider_id: Optional[str] = None
    measured_ms: int = 0
    bonus_ms: int = 0
    total_ms: int = 0

"""
Models / card.py
Rôle:
- Définir les cartes du paquet du cacheur sous forme d'union étiquetée (champ `type`).
- Définir l'état persistant du paquet (main, défausse, composition, malédictions, pièges).

Notes:
- Chaque instance porte un `instance_id` unique, distinct de l'`id` de définition
  (plusieurs instances d'une même définition peuvent coexister, ex: après Duplicate).
- Les variantes de cartes sont figées (`frozen=True`) : une copie modifiée passe par
  `model_copy(update=...)`.
- Les barèmes par taille de partie sont des dicts {GameSize: minutes}.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .player import GameSize

SizeMinutes = Dict[GameSize, int]


class CardType(str, Enum):
    TIME_BONUS = "time-bonus"
    POWERUP = "powerup"
    CURSE = "curse"
    TIME_TRAP = "time-trap"


class PowerupType(str, Enum):
    VETO = "veto"
    RANDOMIZE = "randomize"
    DISCARD_1_DRAW_2 = "discard-1-draw-2"
    DISCARD_2_DRAW_3 = "discard-2-draw-3"
    DRAW_EXPAND = "draw-1-expand"
    DUPLICATE = "duplicate"
    MOVE = "move"


class _CardBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # identifiant de définition (catalogue)
    instance_id: str = ""
    name: str
    description: str = ""


class TimeBonusCard(_CardBase):
    type: Literal[CardType.TIME_BONUS] = CardType.TIME_BONUS
    tier: int
    bonus_minutes: SizeMinutes
    is_duplicate: bool = False


class PowerupCard(_CardBase):
    type: Literal[CardType.POWERUP] = CardType.POWERUP
    powerup_type: PowerupType
    effect: str = ""


class CurseCard(_CardBase):
    type: Literal[CardType.CURSE] = CardType.CURSE
    effect: str = ""
    casting_cost: str = ""
    blocks_questions: bool = False
    blocks_transit: bool = False
    duration_minutes: Optional[SizeMinutes] = None
    penalty_minutes: Optional[SizeMinutes] = None
    until_found: bool = False

    @property
    def curse_id(self) -> str:
        return self.id


class TimeTrapCard(_CardBase):
    type: Literal[CardType.TIME_TRAP] = CardType.TIME_TRAP
    bonus_minutes_when_triggered: int


CardInstance = Annotated[
    Union[TimeBonusCard, PowerupCard, CurseCard, TimeTrapCard],
    Field(discriminator="type"),
]


class DeckComposition(BaseModel):
    """Nombre de cartes restantes par palier / type de powerup / malédiction."""
    time_bonus_by_tier: Dict[int, int] = Field(default_factory=dict)
    powerup_by_type: Dict[PowerupType, int] = Field(default_factory=dict)
    curse_by_id: Dict[str, int] = Field(default_factory=dict)

    def total(self) -> int:
        return (
            sum(self.time_bonus_by_tier.values())
            + sum(self.powerup_by_type.values())
            + sum(self.curse_by_id.values())
        )


class ActiveCurse(BaseModel):
    """Malédiction jouée : instantané de la définition au moment de l'activation."""
    instance_id: str
    curse_id: str
    name: str
    description: str = ""
    effect: str = ""
    casting_cost: str = ""
    activated_at: datetime
    blocks_questions: bool = False
    blocks_transit: bool = False
    duration_minutes: Optional[SizeMinutes] = None
    penalty_minutes: Optional[SizeMinutes] = None
    until_found: bool = False

    @property
    def is_time_based(self) -> bool:
        return bool(self.duration_minutes)

    @property
    def can_clear_manually(self) -> bool:
        return not self.until_found and not self.is_time_based


class ActiveTimeTrap(BaseModel):
    instance_id: str
    station_name: str
    bonus_minutes: int
    is_triggered: bool = False
    placed_at: Optional[datetime] = None
    triggered_at: Optional[datetime] = None


class PendingSelection(BaseModel):
    """Cartes piochées en attente du choix « garder N » (hors main)."""
    cards: List[CardInstance] = Field(default_factory=list)
    keep_count: int = 0


class PersistedDeckState(BaseModel):
    hand: List[CardInstance] = Field(default_factory=list)
    hand_limit: int = 6
    discard_pile: List[CardInstance] = Field(default_factory=list)
    deck_composition: DeckComposition = Field(default_factory=DeckComposition)
    active_curses: List[ActiveCurse] = Field(default_factory=list)
    active_time_traps: List[ActiveTimeTrap] = Field(default_factory=list)
    pending_selection: Optional[PendingSelection] = None


class CardActionResult(BaseModel):
    """Résultat d'une opération de paquet : `success=False` + `error` si refusée."""
    success: bool
    error: Optional[str] = None
    drawn_cards: Optional[List[CardInstance]] = None
    played_card: Optional[CardInstance] = None
    duplicated_card: Optional[CardInstance] = None
    discarded_cards: Optional[List[CardInstance]] = None
    active_curse: Optional[ActiveCurse] = None
    time_trap: Optional[ActiveTimeTrap] = None
    hiding_period_ms: Optional[int] = None
    question_id: Optional[str] = None

    @classmethod
    def fail(cls, error: str) -> "CardActionResult":
        return cls(success=False, error=error)

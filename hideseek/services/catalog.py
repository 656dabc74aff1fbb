"""
Service: catalog.py
Rôle:
- Référentiel statique (lecture seule) des cartes du cacheur et des catégories de questions.
- Exposer `CATALOG` : recherche par palier / type de powerup / id de malédiction / catégorie.
- `QUESTION_BANK` : les 83 questions des chercheurs, chargées depuis `data/questions.json`.

Contenu (règles officielles, 100 cartes hors extension) :
- 55 bonus de temps en 5 paliers (25/15/10/3/2), minutes S/M/L croissantes.
- 21 powerups (Veto 4, Randomize 4, Discard 1 Draw 2 4, Discard 2 Draw 3 4,
  Draw 1 Expand 2, Duplicate 2, Move 1).
- 24 malédictions uniques.
- Time Trap (extension) : hors composition du paquet, ajoutée manuellement.

Remarque:
- Les définitions sont des modèles figés sans `instance_id`; le moteur de paquet
  crée les instances via `model_copy(update={"instance_id": ...})`.
"""
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from hideseek.models.card import (
    CurseCard,
    PowerupCard,
    PowerupType,
    TimeBonusCard,
    TimeTrapCard,
)
from hideseek.models.player import GameSize
from hideseek.models.question import Question
from .io_utils import read_json

S, M, L = GameSize.SMALL, GameSize.MEDIUM, GameSize.LARGE


def _sizes(small: int, medium: int, large: int) -> Dict[GameSize, int]:
    return {S: small, M: medium, L: large}


# (palier, quantité, minutes S/M/L)
TIME_BONUS_TIERS: Tuple[Tuple[int, int, Dict[GameSize, int]], ...] = (
    (1, 25, _sizes(2, 3, 5)),
    (2, 15, _sizes(4, 6, 10)),
    (3, 10, _sizes(6, 9, 15)),
    (4, 3, _sizes(8, 12, 20)),
    (5, 2, _sizes(12, 18, 30)),
)

POWERUP_QUANTITIES: Dict[PowerupType, int] = {
    PowerupType.VETO: 4,
    PowerupType.RANDOMIZE: 4,
    PowerupType.DISCARD_1_DRAW_2: 4,
    PowerupType.DISCARD_2_DRAW_3: 4,
    PowerupType.DRAW_EXPAND: 2,
    PowerupType.DUPLICATE: 2,
    PowerupType.MOVE: 1,
}

# Nombre de cartes à défausser pour les powerups « Discard N, Draw N+1 »
DISCARD_DRAW_COUNTS: Dict[PowerupType, int] = {
    PowerupType.DISCARD_1_DRAW_2: 1,
    PowerupType.DISCARD_2_DRAW_3: 2,
}

# Nouvelle période de cachette accordée par Move
MOVE_HIDING_MINUTES: Dict[GameSize, int] = _sizes(10, 20, 60)

# Période de cachette standard au début d'un round
HIDING_PERIOD_MINUTES: Dict[GameSize, int] = _sizes(30, 60, 180)

TIME_TRAP_BONUS_MINUTES = 15

POWERUP_CARDS: Tuple[PowerupCard, ...] = (
    PowerupCard(
        id="powerup-veto",
        name="Veto Question",
        description="Decline to answer a question",
        powerup_type=PowerupType.VETO,
        effect="Play instead of answering a question. You still draw cards for it; seekers may re-ask it later.",
    ),
    PowerupCard(
        id="powerup-randomize",
        name="Randomize Question",
        description="Replace a question with a random one",
        powerup_type=PowerupType.RANDOMIZE,
        effect="Replace the current question with a random unasked question from the same category.",
    ),
    PowerupCard(
        id="powerup-discard-1-draw-2",
        name="Discard 1, Draw 2",
        description="Trade one card for two",
        powerup_type=PowerupType.DISCARD_1_DRAW_2,
        effect="Discard one other card from your hand. Then, draw and keep two cards from the hider deck.",
    ),
    PowerupCard(
        id="powerup-discard-2-draw-3",
        name="Discard 2, Draw 3",
        description="Trade two cards for three",
        powerup_type=PowerupType.DISCARD_2_DRAW_3,
        effect="Discard two other cards from your hand. Then, draw and keep three cards from the hider deck.",
    ),
    PowerupCard(
        id="powerup-draw-1-expand",
        name="Draw 1, Expand",
        description="Draw a card and expand hand size",
        powerup_type=PowerupType.DRAW_EXPAND,
        effect="Draw one card and permanently increase your hand size by 1.",
    ),
    PowerupCard(
        id="powerup-duplicate",
        name="Duplicate Another Card",
        description="Copy another card in hand",
        powerup_type=PowerupType.DUPLICATE,
        effect="Play this card as a copy of any other card in your hand. A copied time bonus is worth double.",
    ),
    PowerupCard(
        id="powerup-move",
        name="Move",
        description="Establish a new hiding zone",
        powerup_type=PowerupType.MOVE,
        effect="Discard your hand. Seekers stay put while you get a new hiding period to set up a new hiding zone.",
    ),
)


def _curse(
    curse_id: str,
    name: str,
    effect: str,
    casting_cost: str,
    *,
    blocks_questions: bool = False,
    blocks_transit: bool = False,
    duration: Optional[Dict[GameSize, int]] = None,
    penalty: Optional[Dict[GameSize, int]] = None,
    until_found: bool = False,
) -> CurseCard:
    return CurseCard(
        id=curse_id,
        name=name,
        description=effect.split(".")[0],
        effect=effect,
        casting_cost=casting_cost,
        blocks_questions=blocks_questions,
        blocks_transit=blocks_transit,
        duration_minutes=duration,
        penalty_minutes=penalty,
        until_found=until_found,
    )


CURSE_CARDS: Tuple[CurseCard, ...] = (
    _curse("curse-zoologist", "Curse of the Zoologist",
           "Photograph a wild animal. Seekers must photograph an animal in the same category before asking another question.",
           "A photo of an animal", blocks_questions=True),
    _curse("curse-unguided-tourist", "Curse of the Unguided Tourist",
           "Send seekers a street-view image. They must find it in person before asking questions or using transit.",
           "Seekers must be outside", blocks_questions=True, blocks_transit=True),
    _curse("curse-endless-tumble", "Curse of the Endless Tumble",
           "Seekers must roll a die at least 100 feet from where they started until they roll a 5 or a 6.",
           "Roll a die, discard that many cards", penalty=_sizes(10, 20, 30)),
    _curse("curse-hidden-hangman", "Curse of the Hidden Hangman",
           "Seekers must beat the hider at a game of hangman before asking another question or boarding transit.",
           "Discard 2 cards", blocks_questions=True, blocks_transit=True),
    _curse("curse-overflowing-chalice", "Curse of the Overflowing Chalice",
           "For the next three questions, you may draw an extra card.",
           "Discard a card"),
    _curse("curse-mediocre-travel-agent", "Curse of the Mediocre Travel Agent",
           "Choose a place within range of the seekers. They must go there and spend time before asking another question.",
           "Seekers must be on transit", blocks_questions=True, duration=_sizes(5, 10, 20)),
    _curse("curse-luxury-car", "Curse of the Luxury Car",
           "Photograph a car. Seekers must photograph a more expensive car before asking another question.",
           "A photo of a car", blocks_questions=True),
    _curse("curse-u-turn", "Curse of the U-Turn",
           "Seekers must disembark at the next station and travel back the way they came.",
           "Seekers must be heading the wrong way", blocks_transit=True),
    _curse("curse-bridge-troll", "Curse of the Bridge Troll",
           "Seekers must ask their next question from under a bridge.",
           "Seekers must be far from you", blocks_questions=True),
    _curse("curse-water-weight", "Curse of Water Weight",
           "Seekers must acquire and carry a large amount of liquid until found. If they drop it, you gain bonus time.",
           "Seekers must be near a body of water", penalty=_sizes(30, 45, 60), until_found=True),
    _curse("curse-jammed-door", "Curse of the Jammed Door",
           "Whenever seekers want to pass through a doorway, they must roll two dice and get 7 or higher.",
           "Discard 2 cards", duration=_sizes(30, 60, 180)),
    _curse("curse-cairn", "Curse of the Cairn",
           "Build a rock tower. Seekers must build one of the same height before asking another question.",
           "Build a rock tower", blocks_questions=True),
    _curse("curse-urban-explorer", "Curse of the Urban Explorer",
           "For the rest of the run, seekers cannot ask questions when on transit or in transit stations.",
           "Discard 2 cards", until_found=True),
    _curse("curse-impressionable-consumer", "Curse of the Impressionable Consumer",
           "Seekers must enter and buy something advertised to them before asking another question.",
           "Seekers' next question is free", blocks_questions=True),
    _curse("curse-egg-partner", "Curse of the Egg Partner",
           "Seekers must acquire an egg and keep it intact until found. If it breaks, you gain bonus time.",
           "Discard 2 cards", penalty=_sizes(30, 45, 60), until_found=True),
    _curse("curse-distant-cuisine", "Curse of the Distant Cuisine",
           "Find a restaurant serving a distant cuisine. Seekers must visit one of that cuisine before asking another question.",
           "You must be at the restaurant", blocks_questions=True),
    _curse("curse-right-turn", "Curse of the Right Turn",
           "Seekers can only turn right at every intersection.",
           "Discard a card", duration=_sizes(20, 40, 60)),
    _curse("curse-labyrinth", "Curse of the Labyrinth",
           "Draw a solvable maze. Seekers must solve it before asking another question.",
           "Draw a maze", blocks_questions=True),
    _curse("curse-bird-guide", "Curse of the Bird Guide",
           "Film a bird for as long as possible. Seekers must film one for as long before asking another question.",
           "Film a bird", blocks_questions=True),
    _curse("curse-spotty-memory", "Curse of Spotty Memory",
           "One random question category is disabled for seekers, re-rolled after each question.",
           "Discard a time bonus card", until_found=True),
    _curse("curse-lemon-phylactery", "Curse of the Lemon Phylactery",
           "Seekers must each find a lemon and affix it to their clothes before asking another question. If a lemon stops touching a seeker, you gain bonus time.",
           "Discard a powerup", blocks_questions=True, penalty=_sizes(30, 45, 60), until_found=True),
    _curse("curse-drained-brain", "Curse of the Drained Brain",
           "Choose three questions in different categories. Seekers cannot ask them for the rest of the run.",
           "Discard your hand", until_found=True),
    _curse("curse-ransom-note", "Curse of the Ransom Note",
           "Seekers' next question must be spelled out with cut-out letters.",
           "Spell 'ransom note' as a ransom note", blocks_questions=True),
    _curse("curse-gamblers-feet", "Curse of the Gambler's Feet",
           "Seekers must roll a die before taking any steps and take that many steps before rolling again.",
           "Roll a die, if even discard a card", duration=_sizes(20, 40, 60)),
)

TIME_TRAP_CARD = TimeTrapCard(
    id="time-trap",
    name="Time Trap",
    description="Designate a transit station as a trap. If seekers visit it, you gain bonus time.",
    bonus_minutes_when_triggered=TIME_TRAP_BONUS_MINUTES,
)

# Catégories de questions : (id, nom, pioche, garde, minutes de réponse S/M/L)
QUESTION_CATEGORIES: Tuple[Tuple[str, str, int, int, Dict[GameSize, int]], ...] = (
    ("matching", "Matching", 3, 1, _sizes(5, 5, 5)),
    ("measuring", "Measuring", 3, 1, _sizes(5, 5, 5)),
    ("radar", "Radar", 2, 1, _sizes(5, 5, 5)),
    ("thermometer", "Thermometer", 2, 1, _sizes(5, 5, 5)),
    ("photo", "Photo", 1, 1, _sizes(10, 10, 20)),
    ("tentacle", "Tentacle", 4, 2, _sizes(5, 5, 5)),
)


class CardCatalog:
    """Accès en lecture seule aux définitions (aucune mutation possible)."""

    def __init__(self) -> None:
        self._tiers = {tier: (qty, minutes) for tier, qty, minutes in TIME_BONUS_TIERS}
        self._powerups = {card.powerup_type: card for card in POWERUP_CARDS}
        self._curses = {card.id: card for card in CURSE_CARDS}
        self._categories = {c[0]: c for c in QUESTION_CATEGORIES}

    # --- bonus de temps ---
    def tiers(self) -> List[int]:
        return list(self._tiers.keys())

    def tier_quantity(self, tier: int) -> int:
        return self._tiers[tier][0]

    def time_bonus(self, tier: int) -> Optional[TimeBonusCard]:
        entry = self._tiers.get(tier)
        if entry is None:
            return None
        minutes = entry[1]
        return TimeBonusCard(
            id=f"time-bonus-tier-{tier}",
            name=f"Time Bonus (Tier {tier})",
            description=(
                f"Adds {minutes[S]}/{minutes[M]}/{minutes[L]} minutes (S/M/L) to hiding duration"
            ),
            tier=tier,
            bonus_minutes=dict(minutes),
        )

    # --- powerups ---
    def powerup(self, powerup_type: PowerupType) -> Optional[PowerupCard]:
        return self._powerups.get(powerup_type)

    def powerup_quantity(self, powerup_type: PowerupType) -> int:
        return POWERUP_QUANTITIES.get(powerup_type, 0)

    # --- malédictions ---
    def curse(self, curse_id: str) -> Optional[CurseCard]:
        return self._curses.get(curse_id)

    def curse_ids(self) -> List[str]:
        return list(self._curses.keys())

    # --- piège ---
    def time_trap(self) -> TimeTrapCard:
        return TIME_TRAP_CARD

    # --- questions ---
    def response_time_ms(self, category_id: str, game_size: GameSize) -> Optional[int]:
        entry = self._categories.get(category_id)
        if entry is None:
            return None
        return entry[4][game_size] * 60_000

    def draw_keep(self, category_id: str) -> Optional[Tuple[int, int]]:
        entry = self._categories.get(category_id)
        if entry is None:
            return None
        return entry[2], entry[3]

    def category_ids(self) -> List[str]:
        return list(self._categories.keys())

    def category_name(self, category_id: str) -> Optional[str]:
        entry = self._categories.get(category_id)
        return entry[1] if entry else None

    # --- durées de phase ---
    @staticmethod
    def hiding_period_ms(game_size: GameSize) -> int:
        return HIDING_PERIOD_MINUTES[game_size] * 60_000

    @staticmethod
    def move_hiding_period_ms(game_size: GameSize) -> int:
        return MOVE_HIDING_MINUTES[game_size] * 60_000


CATALOG = CardCatalog()


def _app_root() -> Path:
    return Path(__file__).resolve().parents[1]


QUESTIONS_PATH = _app_root() / "data" / "questions.json"


class QuestionBank:
    """Banque statique des questions.

    Source: hideseek/data/questions.json
    Exemple d'entrée:
    {
      "id": "radar-1-mile",
      "text": "Are you within 1 mile of me?",
      "category_id": "radar",
      "available_in": ["small", "medium", "large"]
    }
    """

    def __init__(self, path: Path = QUESTIONS_PATH) -> None:
        self.path = path
        self.questions: Dict[str, Question] = {}
        self.load()

    def load(self) -> None:
        """Charge le JSON et indexe les questions par id (ordre du fichier conservé)."""
        raw = read_json(self.path) or {"questions": []}
        self.questions = {q["id"]: Question.model_validate(q) for q in raw.get("questions", [])}

    def get(self, question_id: str) -> Optional[Question]:
        return self.questions.get(question_id)

    def all(self) -> List[Question]:
        return list(self.questions.values())

    def by_category(self, category_id: str) -> List[Question]:
        return [q for q in self.questions.values() if q.category_id == category_id]


QUESTION_BANK = QuestionBank()

"""
Service: deck_engine.py
Rôle:
- Paquet du cacheur : composition restante, main, défausse, malédictions actives,
  pièges actifs, sélection en attente (« piocher X, garder Y »).
- Effets des powerups (Draw/Expand, Duplicate, Discard/Draw, Move; Veto et Randomize
  agissent sur la question en attente du moteur de questions).
- Cycle de vie des malédictions (activation, levée manuelle / expiration / fin de round)
  et des pièges (pose, déclenchement unique).

Invariants:
- len(main) <= limite de main après chaque opération; la limite ne fait qu'augmenter.
- Les compteurs de composition ne passent jamais sous 0 : un paquet épuisé donne
  simplement moins de cartes.
- Toute mutation réussie persiste l'état complet sous la clé `cards`.
- Un refus attendu retourne CardActionResult(success=False, error=...), jamais d'exception.

Tirage:
- Un nombre uniforme dans [0, total restant) est reporté successivement sur les
  paliers de bonus, les types de powerups puis les malédictions : la probabilité
  de chaque catégorie est proportionnelle à son stock.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, List, Optional, Sequence, TYPE_CHECKING
from uuid import uuid4

from pydantic import ValidationError

from hideseek.config.settings import settings
from hideseek.models.card import (
    ActiveCurse,
    ActiveTimeTrap,
    CardActionResult,
    CardInstance,
    CardType,
    CurseCard,
    DeckComposition,
    PendingSelection,
    PersistedDeckState,
    PowerupCard,
    PowerupType,
    TimeBonusCard,
    TimeTrapCard,
)
from hideseek.models.event import CURSE_CLEARED, TRAP_TRIGGERED
from hideseek.models.player import GameSize
from .catalog import CATALOG, DISCARD_DRAW_COUNTS
from .events import EventBus
from .notifications import NotificationGateway
from .persistence import PersistenceGateway

if TYPE_CHECKING:
    from .question_engine import QuestionEngine
    from .session_machine import SessionStateMachine

logger = logging.getLogger(__name__)

STORAGE_KEY = "cards"

REASON_MANUAL = "manual"
REASON_EXPIRED = "expired"
REASON_ROUND_END = "round_end"


def full_composition() -> DeckComposition:
    """Composition d'un paquet neuf (100 cartes)."""
    return DeckComposition(
        time_bonus_by_tier={tier: CATALOG.tier_quantity(tier) for tier in CATALOG.tiers()},
        powerup_by_type={pt: CATALOG.powerup_quantity(pt) for pt in PowerupType},
        curse_by_id={cid: 1 for cid in CATALOG.curse_ids()},
    )


def _ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _datetime_to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class DeckEngine:
    def __init__(
        self,
        storage: PersistenceGateway,
        bus: EventBus,
        notifier: NotificationGateway,
        clock: Callable[[], int],
        rng: Optional[random.Random] = None,
        session: Optional["SessionStateMachine"] = None,
        questions: Optional["QuestionEngine"] = None,
    ) -> None:
        self.storage = storage
        self.bus = bus
        self.notifier = notifier
        self.clock = clock
        self.rng = rng or random.Random()
        self.session = session
        self.questions = questions
        self._lock = RLock()
        self._state = self._fresh_state()

    @staticmethod
    def _fresh_state() -> PersistedDeckState:
        return PersistedDeckState(
            hand_limit=settings.DEFAULT_HAND_LIMIT,
            deck_composition=full_composition(),
        )

    # ======================================================
    # Lecture
    # ======================================================
    @property
    def state(self) -> PersistedDeckState:
        return self._state.model_copy(deep=True)

    @property
    def hand(self) -> List[CardInstance]:
        return list(self._state.hand)

    @property
    def hand_limit(self) -> int:
        return self._state.hand_limit

    @property
    def hand_count(self) -> int:
        return len(self._state.hand)

    @property
    def is_hand_full(self) -> bool:
        return self.hand_count >= self._state.hand_limit

    @property
    def available_slots(self) -> int:
        return max(0, self._state.hand_limit - self.hand_count)

    @property
    def deck_size(self) -> int:
        return self._state.deck_composition.total()

    @property
    def composition(self) -> DeckComposition:
        return self._state.deck_composition.model_copy(deep=True)

    @property
    def discard_pile(self) -> List[CardInstance]:
        return list(self._state.discard_pile)

    @property
    def active_curses(self) -> List[ActiveCurse]:
        return [c.model_copy() for c in self._state.active_curses]

    @property
    def active_time_traps(self) -> List[ActiveTimeTrap]:
        return [t.model_copy() for t in self._state.active_time_traps]

    @property
    def pending_selection(self) -> Optional[PendingSelection]:
        pending = self._state.pending_selection
        return pending.model_copy(deep=True) if pending else None

    @property
    def time_bonus_cards(self) -> List[TimeBonusCard]:
        return [c for c in self._state.hand if isinstance(c, TimeBonusCard)]

    @property
    def powerup_cards(self) -> List[PowerupCard]:
        return [c for c in self._state.hand if isinstance(c, PowerupCard)]

    @property
    def curse_cards(self) -> List[CurseCard]:
        return [c for c in self._state.hand if isinstance(c, CurseCard)]

    def _game_size(self) -> GameSize:
        return self.session.game_size if self.session is not None else GameSize.SMALL

    def total_time_bonus(self, game_size: GameSize) -> int:
        """Minutes de bonus des cartes encore en main (taille de partie donnée)."""
        return sum(c.bonus_minutes.get(game_size, 0) for c in self.time_bonus_cards)

    def triggered_trap_bonus_minutes(self) -> int:
        return sum(t.bonus_minutes for t in self._state.active_time_traps if t.is_triggered)

    def round_bonus_ms(self, game_size: GameSize) -> int:
        return (self.total_time_bonus(game_size) + self.triggered_trap_bonus_minutes()) * 60_000

    # ======================================================
    # Persistance
    # ======================================================
    def _persist(self) -> None:
        self.storage.save(STORAGE_KEY, self._state.model_dump(mode="json"))
        logger.debug("Deck persisted", extra={"hand_count": self.hand_count, "deck_size": self.deck_size})

    def rehydrate(self) -> bool:
        raw = self.storage.load(STORAGE_KEY)
        if raw is None:
            return False
        try:
            restored = PersistedDeckState.model_validate(raw)
            if len(restored.hand) > restored.hand_limit:
                raise ValueError("hand exceeds hand limit")
        except (ValidationError, ValueError, TypeError):
            logger.warning("Discarding unreadable deck state", extra={"storage_key": STORAGE_KEY})
            self.storage.remove(STORAGE_KEY)
            return False
        with self._lock:
            self._state = restored
        logger.info("Deck rehydrated", extra={"hand_count": self.hand_count, "deck_size": self.deck_size})
        return True

    # ======================================================
    # Tirage
    # ======================================================
    @staticmethod
    def _new_instance(definition: CardInstance) -> CardInstance:
        return definition.model_copy(update={"instance_id": uuid4().hex})

    def _draw_one(self) -> Optional[CardInstance]:
        comp = self._state.deck_composition
        total = comp.total()
        if total <= 0:
            return None
        roll = self.rng.randrange(total)

        for tier, count in comp.time_bonus_by_tier.items():
            if roll < count:
                comp.time_bonus_by_tier[tier] = count - 1
                return self._new_instance(CATALOG.time_bonus(tier))
            roll -= count
        for ptype, count in comp.powerup_by_type.items():
            if roll < count:
                comp.powerup_by_type[ptype] = count - 1
                return self._new_instance(CATALOG.powerup(ptype))
            roll -= count
        for curse_id, count in comp.curse_by_id.items():
            if roll < count:
                comp.curse_by_id[curse_id] = count - 1
                return self._new_instance(CATALOG.curse(curse_id))
            roll -= count
        return None

    def _draw_many(self, count: int) -> List[CardInstance]:
        drawn: List[CardInstance] = []
        for _ in range(max(0, count)):
            card = self._draw_one()
            if card is None:
                break
            drawn.append(card)
        return drawn

    def draw_cards(self, count: int) -> CardActionResult:
        """
        Pioche `count` cartes directement en main, dans la limite des places libres.
        Seul un paquet vide est un échec : main pleine ou count <= 0 piochent 0 carte.
        """
        with self._lock:
            if self.deck_size == 0:
                return CardActionResult.fail("Deck is empty")
            drawn = self._draw_many(min(count, self.available_slots))
            if drawn:
                self._state.hand.extend(drawn)
                self._persist()
        logger.info("Cards drawn", extra={"requested": count, "drawn": len(drawn)})
        return CardActionResult(success=True, drawn_cards=drawn)

    def draw_for_selection(self, draw_count: int, keep_count: int) -> CardActionResult:
        """Pioche pour une question : les cartes attendent `keep_cards` hors de la main."""
        with self._lock:
            if self._state.pending_selection is not None:
                return CardActionResult.fail("A card selection is already pending")
            if draw_count <= 0 or keep_count <= 0:
                return CardActionResult.fail("Draw and keep counts must be positive")
            if self.deck_size == 0:
                return CardActionResult.fail("Deck is empty")
            drawn = self._start_selection(draw_count, keep_count)
            self._persist()
        return CardActionResult(success=True, drawn_cards=drawn)

    def draw_for_question(self, category_id: str) -> CardActionResult:
        """« Piocher X, garder Y » avec les valeurs de la catégorie de question."""
        draw_keep = CATALOG.draw_keep(category_id)
        if draw_keep is None:
            return CardActionResult.fail("Unknown question category")
        return self.draw_for_selection(*draw_keep)

    def _start_selection(self, draw_count: int, keep_count: int) -> List[CardInstance]:
        drawn = self._draw_many(draw_count)
        self._state.pending_selection = PendingSelection(
            cards=drawn, keep_count=min(keep_count, len(drawn))
        )
        return drawn

    def keep_cards(self, instance_ids: Sequence[str]) -> CardActionResult:
        """Garde les cartes choisies; le reste de la sélection part en défausse."""
        with self._lock:
            pending = self._state.pending_selection
            if pending is None:
                return CardActionResult.fail("No card selection pending")
            wanted = list(dict.fromkeys(instance_ids))
            by_id = {c.instance_id: c for c in pending.cards}
            if any(i not in by_id for i in wanted):
                return CardActionResult.fail("Card not found in selection")
            if len(wanted) > pending.keep_count:
                return CardActionResult.fail(f"You can keep at most {pending.keep_count} card(s)")
            if len(wanted) > self.available_slots:
                return CardActionResult.fail("Not enough room in hand")
            kept = [by_id[i] for i in wanted]
            rejected = [c for c in pending.cards if c.instance_id not in wanted]
            self._state.hand.extend(kept)
            self._state.discard_pile.extend(rejected)
            self._state.pending_selection = None
            self._persist()
        return CardActionResult(success=True, drawn_cards=kept, discarded_cards=rejected)

    # ======================================================
    # Main
    # ======================================================
    def _find_in_hand(self, instance_id: str) -> Optional[CardInstance]:
        return next((c for c in self._state.hand if c.instance_id == instance_id), None)

    def _remove_from_hand(self, instance_id: str) -> Optional[CardInstance]:
        card = self._find_in_hand(instance_id)
        if card is not None:
            self._state.hand = [c for c in self._state.hand if c.instance_id != instance_id]
        return card

    def add_card_to_hand(
        self,
        card_type: CardType,
        *,
        tier: Optional[int] = None,
        powerup_type: Optional[PowerupType] = None,
        curse_id: Optional[str] = None,
    ) -> CardActionResult:
        """Insertion directe (outillage de mise en place); ne touche pas la composition."""
        with self._lock:
            if self.is_hand_full:
                return CardActionResult.fail("Hand is full")
            definition: Optional[CardInstance]
            card_type = CardType(card_type)
            if card_type == CardType.TIME_BONUS:
                definition = CATALOG.time_bonus(tier or 1)
            elif card_type == CardType.POWERUP:
                definition = CATALOG.powerup(PowerupType(powerup_type)) if powerup_type else None
            elif card_type == CardType.CURSE:
                definition = CATALOG.curse(curse_id) if curse_id else None
            elif card_type == CardType.TIME_TRAP:
                definition = CATALOG.time_trap()
            else:
                definition = None
            if definition is None:
                return CardActionResult.fail("Unknown card definition")
            card = self._new_instance(definition)
            self._state.hand.append(card)
            self._persist()
        return CardActionResult(success=True, drawn_cards=[card])

    def discard_card(self, instance_id: str) -> CardActionResult:
        with self._lock:
            card = self._remove_from_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            self._state.discard_pile.append(card)
            self._persist()
        return CardActionResult(success=True, discarded_cards=[card])

    def clear_hand(self) -> CardActionResult:
        with self._lock:
            discarded = list(self._state.hand)
            self._state.discard_pile.extend(discarded)
            self._state.hand = []
            self._persist()
        return CardActionResult(success=True, discarded_cards=discarded)

    def expand_hand_limit(self, by: int = 1) -> CardActionResult:
        with self._lock:
            if by < 1:
                return CardActionResult.fail("Hand limit can only increase")
            self._state.hand_limit += by
            self._persist()
        return CardActionResult(success=True)

    def reset(self) -> None:
        """Paquet neuf pour un nouveau cacheur (main vide, limite initiale)."""
        with self._lock:
            self._state = self._fresh_state()
            self._persist()
        logger.info("Deck reset")

    # ======================================================
    # Cartes jouées
    # ======================================================
    def play_card(self, instance_id: str) -> CardActionResult:
        """Joue une carte sans cible : Veto, Randomize (sur la question en attente) ou malédiction."""
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if isinstance(card, CurseCard):
                return self.play_curse_card(instance_id)
            if isinstance(card, TimeBonusCard):
                return CardActionResult.fail("Time bonus cards count while held and cannot be played")
            if isinstance(card, TimeTrapCard):
                return CardActionResult.fail("Time trap cards need a station name")
            if isinstance(card, PowerupCard):
                if card.powerup_type == PowerupType.VETO:
                    return self.play_veto_powerup(instance_id)
                if card.powerup_type == PowerupType.RANDOMIZE:
                    return self.play_randomize_powerup(instance_id)
                return CardActionResult.fail("This powerup has its own action")
            raise TypeError(f"unsupported card variant: {type(card).__name__}")

    def play_draw_expand_powerup(self, instance_id: str) -> CardActionResult:
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(card, PowerupCard) or card.powerup_type != PowerupType.DRAW_EXPAND:
                return CardActionResult.fail("Card is not a Draw/Expand powerup")
            self._remove_from_hand(instance_id)
            self._state.discard_pile.append(card)
            self._state.hand_limit += 1
            drawn = self._draw_many(min(1, self.available_slots))
            self._state.hand.extend(drawn)
            self._persist()
        logger.info("Draw/Expand played", extra={"hand_limit": self.hand_limit, "drawn": len(drawn)})
        return CardActionResult(success=True, played_card=card, drawn_cards=drawn)

    def play_duplicate_powerup(self, source_instance_id: str, target_instance_id: str) -> CardActionResult:
        with self._lock:
            source = self._find_in_hand(source_instance_id)
            if source is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(source, PowerupCard) or source.powerup_type != PowerupType.DUPLICATE:
                return CardActionResult.fail("Card is not a Duplicate powerup")
            if source_instance_id == target_instance_id:
                return CardActionResult.fail("Cannot duplicate itself")
            target = self._find_in_hand(target_instance_id)
            if target is None:
                return CardActionResult.fail("Target card not found in hand")

            if isinstance(target, TimeBonusCard):
                clone = target.model_copy(update={
                    "instance_id": uuid4().hex,
                    "bonus_minutes": {size: m * 2 for size, m in target.bonus_minutes.items()},
                    "is_duplicate": True,
                })
            else:
                clone = self._new_instance(target)

            self._remove_from_hand(source_instance_id)
            self._state.discard_pile.append(source)
            self._state.hand.append(clone)
            self._persist()
        return CardActionResult(success=True, played_card=source, duplicated_card=clone)

    def play_discard_draw_powerup(self, instance_id: str, discarded_instance_ids: Sequence[str]) -> CardActionResult:
        """Discard 1 Draw 2 / Discard 2 Draw 3 : défausse N autres cartes puis pioche N+1."""
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(card, PowerupCard) or card.powerup_type not in DISCARD_DRAW_COUNTS:
                return CardActionResult.fail("Card is not a Discard/Draw powerup")
            need = DISCARD_DRAW_COUNTS[card.powerup_type]
            others = {c.instance_id: c for c in self._state.hand if c.instance_id != instance_id}
            if len(others) < need:
                return CardActionResult.fail("Not enough other cards in hand")
            selected = list(dict.fromkeys(discarded_instance_ids))
            if instance_id in selected:
                return CardActionResult.fail("Cannot discard the powerup itself")
            if len(selected) != need:
                return CardActionResult.fail(f"Select exactly {need} card(s) to discard")
            if any(i not in others for i in selected):
                return CardActionResult.fail("Card not found in hand")

            discarded = [others[i] for i in selected]
            for i in [instance_id, *selected]:
                self._remove_from_hand(i)
            self._state.discard_pile.append(card)
            self._state.discard_pile.extend(discarded)
            drawn = self._draw_many(min(need + 1, self.available_slots))
            self._state.hand.extend(drawn)
            self._persist()
        return CardActionResult(success=True, played_card=card, discarded_cards=discarded, drawn_cards=drawn)

    def play_move_powerup(self, instance_id: str) -> CardActionResult:
        """Défausse toute la main et rouvre une période de cachette (10/20/60 min)."""
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(card, PowerupCard) or card.powerup_type != PowerupType.MOVE:
                return CardActionResult.fail("Card is not a Move powerup")
            if self.session is None:
                return CardActionResult.fail("No active session")
            duration_ms = CATALOG.move_hiding_period_ms(self.session.game_size)
            granted = self.session.grant_move_hiding_period(duration_ms)
            if not granted.success:
                return CardActionResult.fail(granted.error or "Move not allowed now")
            discarded = list(self._state.hand)
            self._state.discard_pile.extend(discarded)
            self._state.hand = []
            self._persist()
        logger.info("Move played", extra={"hiding_period_ms": duration_ms})
        return CardActionResult(success=True, played_card=card, discarded_cards=discarded, hiding_period_ms=duration_ms)

    def _pending_question_id(self) -> Optional[str]:
        if self.questions is None:
            return None
        pending = self.questions.pending_question
        return pending.question_id if pending else None

    def play_veto_powerup(self, instance_id: str) -> CardActionResult:
        """Refuse la question en attente; le cacheur pioche tout de même pour sa catégorie."""
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(card, PowerupCard) or card.powerup_type != PowerupType.VETO:
                return CardActionResult.fail("Card is not a Veto powerup")
            question_id = self._pending_question_id()
            if question_id is None:
                return CardActionResult.fail("No question is pending")
            if self._state.pending_selection is not None:
                return CardActionResult.fail("A card selection is already pending")
            vetoed = self.questions.veto_question(question_id)
            if not vetoed.success:
                return CardActionResult.fail(vetoed.error or "Veto not allowed now")
            self._remove_from_hand(instance_id)
            self._state.discard_pile.append(card)
            drawn = self._start_selection(vetoed.cards_draw, vetoed.cards_keep) if self.deck_size else []
            self._persist()
        logger.info("Veto played", extra={"question_id": question_id, "drawn": len(drawn)})
        return CardActionResult(success=True, played_card=card, drawn_cards=drawn, question_id=question_id)

    def play_randomize_powerup(self, instance_id: str) -> CardActionResult:
        """Remplace la question en attente par une autre de la même catégorie."""
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(card, PowerupCard) or card.powerup_type != PowerupType.RANDOMIZE:
                return CardActionResult.fail("Card is not a Randomize powerup")
            question_id = self._pending_question_id()
            if question_id is None:
                return CardActionResult.fail("No question is pending")
            randomized = self.questions.randomize_question(question_id)
            if not randomized.success:
                return CardActionResult.fail(randomized.error or "Randomize not allowed now")
            self._remove_from_hand(instance_id)
            self._state.discard_pile.append(card)
            self._persist()
        logger.info(
            "Randomize played",
            extra={"question_id": question_id, "new_question_id": randomized.new_question_id},
        )
        return CardActionResult(success=True, played_card=card, question_id=randomized.new_question_id)

    # ======================================================
    # Malédictions
    # ======================================================
    def play_curse_card(self, instance_id: str) -> CardActionResult:
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(card, CurseCard):
                return CardActionResult.fail("Card is not a curse")
            curse = ActiveCurse(
                instance_id=card.instance_id,
                curse_id=card.curse_id,
                name=card.name,
                description=card.description,
                effect=card.effect,
                casting_cost=card.casting_cost,
                activated_at=_ms_to_datetime(self.clock()),
                blocks_questions=card.blocks_questions,
                blocks_transit=card.blocks_transit,
                duration_minutes=card.duration_minutes,
                penalty_minutes=card.penalty_minutes,
                until_found=card.until_found,
            )
            self._remove_from_hand(instance_id)
            self._state.active_curses.append(curse)
            self._persist()
        logger.info("Curse activated", extra={"curse_id": curse.curse_id})
        return CardActionResult(success=True, played_card=card, active_curse=curse)

    def _find_curse(self, instance_id: str) -> Optional[ActiveCurse]:
        return next((c for c in self._state.active_curses if c.instance_id == instance_id), None)

    def _clear_curse(self, curse: ActiveCurse, reason: str) -> None:
        self._state.active_curses = [
            c for c in self._state.active_curses if c.instance_id != curse.instance_id
        ]
        self._persist()
        logger.info("Curse cleared", extra={"curse_id": curse.curse_id, "reason": reason})
        self.notifier.show_toast(f"{curse.name} has been cleared", "success")
        self.bus.publish(CURSE_CLEARED, {
            "instance_id": curse.instance_id,
            "curse_id": curse.curse_id,
            "name": curse.name,
            "reason": reason,
        })

    def clear_curse(self, instance_id: str) -> CardActionResult:
        with self._lock:
            curse = self._find_curse(instance_id)
            if curse is None:
                return CardActionResult.fail("Curse not found")
            if curse.is_time_based:
                return CardActionResult.fail("Time-based curses clear when they expire")
            if curse.until_found:
                return CardActionResult.fail("This curse lasts until the hider is found")
            self._clear_curse(curse, REASON_MANUAL)
        return CardActionResult(success=True, active_curse=curse)

    def curse_remaining_ms(
        self,
        instance_id: str,
        now_ms: Optional[int] = None,
        game_size: Optional[GameSize] = None,
    ) -> Optional[int]:
        """Temps restant d'une malédiction à durée (None si pas de durée)."""
        curse = self._find_curse(instance_id)
        if curse is None or not curse.is_time_based:
            return None
        size = game_size or self._game_size()
        now = self.clock() if now_ms is None else now_ms
        duration_ms = curse.duration_minutes.get(size, 0) * 60_000
        return duration_ms - (now - _datetime_to_ms(curse.activated_at))

    def has_time_based_curses(self) -> bool:
        return any(c.is_time_based for c in self._state.active_curses)

    def check_curse_expiry(self, now_ms: Optional[int] = None, game_size: Optional[GameSize] = None) -> List[ActiveCurse]:
        """Lève chaque malédiction à durée dont le temps restant est <= 0."""
        now = self.clock() if now_ms is None else now_ms
        expired: List[ActiveCurse] = []
        with self._lock:
            for curse in list(self._state.active_curses):
                remaining = self.curse_remaining_ms(curse.instance_id, now, game_size)
                if remaining is not None and remaining <= 0:
                    self._clear_curse(curse, REASON_EXPIRED)
                    expired.append(curse)
        return expired

    def clear_round_curses(self) -> List[ActiveCurse]:
        with self._lock:
            cleared = list(self._state.active_curses)
            for curse in cleared:
                self._clear_curse(curse, REASON_ROUND_END)
        return cleared

    # ======================================================
    # Pièges
    # ======================================================
    def play_time_trap_card(self, instance_id: str, station_name: str) -> CardActionResult:
        with self._lock:
            card = self._find_in_hand(instance_id)
            if card is None:
                return CardActionResult.fail("Card not found in hand")
            if not isinstance(card, TimeTrapCard):
                return CardActionResult.fail("Card is not a Time Trap")
            station = (station_name or "").strip()
            if not station:
                return CardActionResult.fail("Station name is required")
            trap = ActiveTimeTrap(
                instance_id=card.instance_id,
                station_name=station,
                bonus_minutes=card.bonus_minutes_when_triggered,
                placed_at=_ms_to_datetime(self.clock()),
            )
            self._remove_from_hand(instance_id)
            self._state.active_time_traps.append(trap)
            self._persist()
        return CardActionResult(success=True, played_card=card, time_trap=trap)

    def trigger_time_trap(self, instance_id: str) -> CardActionResult:
        with self._lock:
            trap = next((t for t in self._state.active_time_traps if t.instance_id == instance_id), None)
            if trap is None:
                return CardActionResult.fail("Time trap not found")
            if trap.is_triggered:
                return CardActionResult.fail("Time trap already triggered")
            trap.is_triggered = True
            trap.triggered_at = _ms_to_datetime(self.clock())
            self._persist()
            snapshot = trap.model_copy()
        self.notifier.show_toast(
            f"Time trap at {snapshot.station_name} triggered! +{snapshot.bonus_minutes} minutes",
            "success",
        )
        self.bus.publish(TRAP_TRIGGERED, {
            "instance_id": snapshot.instance_id,
            "station_name": snapshot.station_name,
            "bonus_minutes": snapshot.bonus_minutes,
        })
        return CardActionResult(success=True, time_trap=snapshot)

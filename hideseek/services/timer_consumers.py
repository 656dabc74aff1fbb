"""
Service: timer_consumers.py
Rôle:
- Colle de réhydratation commune (`PhaseTimer`) : un PersistentTimer + sa clé de stockage
  + la phase de session pour laquelle il est valide.
- Trois consommateurs : période de cachette (compte à rebours), durée de cachette
  (chronomètre), temps de réponse à une question (compte à rebours).

Réhydratation (mount):
1. Charger l'enregistrement; absent / illisible / phase ou round différents -> supprimé.
2. En cours et non pausé : total = elapsed + (now - start_time).
   Si total >= borne du compte à rebours : enregistrement périmé supprimé, départ à neuf
   (jamais de on_complete rétroactif).
3. En pause : elapsed restauré tel quel, le timer reste en pause.
4. Pendant la réhydratation, `_rehydrating` neutralise le gestionnaire de phase.

Persistance:
- À chaque tick, pause, reprise, stop et au passage en arrière-plan.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, Optional

from pydantic import ValidationError

from hideseek.config.settings import settings
from hideseek.models.event import (
    PAUSE_CHANGED,
    PHASE_CHANGED,
    QUESTION_ANSWERED,
    QUESTION_ASKED,
    QUESTION_RANDOMIZED,
    QUESTION_VETOED,
    Event,
)
from hideseek.models.player import ActionResult, GamePhase
from hideseek.models.timer import PersistedTimerState
from .catalog import CATALOG, QUESTION_BANK
from .events import EventBus
from .notifications import NotificationGateway
from .persistence import PersistenceGateway
from .session_machine import SessionStateMachine
from .timer import PersistentTimer

logger = logging.getLogger(__name__)


class PhaseTimer:
    key: str = ""
    countdown: bool = False
    valid_phases: FrozenSet[GamePhase] = frozenset()
    # Démarre automatiquement à l'entrée dans une phase valide
    autostart: bool = True

    def __init__(
        self,
        session: SessionStateMachine,
        storage: PersistenceGateway,
        bus: EventBus,
        notifier: NotificationGateway,
        clock: Callable[[], int],
        tick_interval_ms: Optional[int] = None,
    ) -> None:
        self.session = session
        self.storage = storage
        self.bus = bus
        self.notifier = notifier
        self.clock = clock
        self._rehydrating = False
        self.timer = PersistentTimer(
            countdown=self.countdown,
            initial_time_ms=0,
            tick_interval_ms=tick_interval_ms,
            on_tick=self._on_tick,
            on_complete=self._on_complete,
            clock=clock,
        )
        bus.subscribe(PHASE_CHANGED, self._handle_phase_event)
        bus.subscribe(PAUSE_CHANGED, self._handle_pause_event)

    # ---------- à surcharger ----------
    def bound_ms(self) -> Optional[int]:
        """Durée totale d'un compte à rebours (None pour un chronomètre)."""
        return None

    def is_valid_phase(self) -> bool:
        return self.session.phase in self.valid_phases

    def _fresh_on_mount(self) -> bool:
        return self.is_valid_phase()

    def _accepts_record_phase(self, phase: str) -> bool:
        return phase == self.session.phase.value

    def context(self) -> Dict[str, Any]:
        return {"round_number": self.session.round_number}

    def _context_matches(self, context: Dict[str, Any]) -> bool:
        return context.get("round_number") == self.session.round_number

    def _restore_context(self, context: Dict[str, Any]) -> None:
        pass

    def _reset_context(self) -> None:
        pass

    def _settle_restored(self) -> None:
        pass

    def on_tick(self, elapsed: int) -> None:
        pass

    def on_complete(self) -> None:
        pass

    def on_phase_change(self, old: GamePhase, new: GamePhase, move: bool) -> None:
        if new in self.valid_phases and old not in self.valid_phases:
            if self.autostart:
                self.start_fresh()
        elif new not in self.valid_phases and old in self.valid_phases:
            self.stop_and_discard()

    # ---------- persistance ----------
    def persist(self) -> None:
        record = PersistedTimerState(
            elapsed=self.timer.elapsed,
            is_running=self.timer.is_running,
            is_paused=self.timer.is_paused,
            start_time=self.clock(),
            phase=self.session.phase.value,
            context=self.context(),
        )
        self.storage.save(self.key, record.model_dump(mode="json"))

    def discard(self) -> None:
        self.storage.remove(self.key)

    def rehydrate(self) -> bool:
        raw = self.storage.load(self.key)
        if raw is None:
            return False
        try:
            record = PersistedTimerState.model_validate(raw)
        except (ValidationError, TypeError):
            logger.warning("Discarding unreadable timer record", extra={"storage_key": self.key})
            self.discard()
            return False

        if (
            not self.is_valid_phase()
            or not self._accepts_record_phase(record.phase)
            or not self._context_matches(record.context)
        ):
            logger.info("Discarding stale timer record", extra={"storage_key": self.key, "phase": record.phase})
            self.discard()
            return False

        bound = self.bound_ms()
        if bound is not None:
            self.timer.initial_time_ms = bound

        if not record.is_running:
            self.timer.restore(record.elapsed, running=False)
        elif record.is_paused:
            self.timer.restore(record.elapsed, paused=True)
        else:
            drift = max(0, self.clock() - record.start_time) if record.start_time is not None else 0
            total = record.elapsed + drift
            if bound is not None and total >= bound:
                logger.info("Timer expired while away, starting fresh", extra={"storage_key": self.key})
                self.discard()
                return False
            self.timer.restore(total)
            if self.session.is_paused:
                self.timer.pause()

        self._settle_restored()
        self._restore_context(record.context)
        self.persist()
        logger.info("Timer rehydrated", extra={"storage_key": self.key, "elapsed": self.timer.elapsed})
        return True

    # ---------- cycle ----------
    def mount(self) -> None:
        self._rehydrating = True
        try:
            restored = self.rehydrate()
            if not restored and self.autostart and self._fresh_on_mount():
                self.start_fresh()
        finally:
            self._rehydrating = False

    def start_fresh(self) -> None:
        bound = self.bound_ms()
        if bound is not None:
            self.timer.initial_time_ms = bound
        self._reset_context()
        self.timer.start()
        if self.session.is_paused:
            self.timer.pause()
        self.persist()
        logger.debug("Timer started", extra={"storage_key": self.key, "bound_ms": bound})

    def stop_and_discard(self) -> None:
        self.timer.reset()
        self._reset_context()
        self.discard()

    def _handle_phase_event(self, event: Event) -> None:
        if self._rehydrating:
            return
        self.on_phase_change(event.payload["old"], event.payload["new"], bool(event.payload.get("move")))

    def _handle_pause_event(self, event: Event) -> None:
        if not self.timer.is_running:
            return
        if event.payload.get("is_paused"):
            self.timer.pause()
        else:
            self.timer.resume()
        self.persist()

    def _on_tick(self, elapsed: int) -> None:
        self.on_tick(elapsed)
        if self.timer.is_running:
            self.persist()

    def _on_complete(self) -> None:
        self.discard()
        self.on_complete()

    def handle_visibility_change(self, is_returning_to_foreground: bool) -> None:
        if is_returning_to_foreground:
            self.timer.handle_visibility_change(True)
            if self.timer.is_running:
                self.persist()
        elif self.timer.is_running or self.timer.elapsed:
            # passage en arrière-plan : sauvegarde immédiate
            self.persist()

    def status(self) -> Dict[str, Any]:
        return {
            "elapsed_ms": self.timer.elapsed,
            "remaining_ms": self.timer.remaining,
            "is_running": self.timer.is_running,
            "is_paused": self.timer.is_paused,
        }


class HidingPeriodTimer(PhaseTimer):
    """Compte à rebours de la période de cachette; lance la recherche à zéro."""
    key = "timer:hiding-period"
    countdown = True
    valid_phases = frozenset({GamePhase.HIDING_PERIOD})

    def __init__(self, *args, **kwargs) -> None:
        self.warned = False
        super().__init__(*args, **kwargs)

    def bound_ms(self) -> Optional[int]:
        return self.session.hiding_period_ms()

    def context(self) -> Dict[str, Any]:
        return {**super().context(), "warned": self.warned}

    def _restore_context(self, context: Dict[str, Any]) -> None:
        self.warned = bool(context.get("warned"))

    def _reset_context(self) -> None:
        self.warned = False

    def on_tick(self, elapsed: int) -> None:
        remaining = self.timer.remaining or 0
        if not self.warned and 0 < remaining <= settings.HIDING_WARNING_MS:
            self.warned = True
            self.notifier.notify_timer_warning()

    def on_complete(self) -> None:
        logger.info("Hiding period over", extra={"round_number": self.session.round_number})
        self.notifier.notify_hiding_period_ended()
        self.session.start_seeking()


RECORDABLE_DURATION_PHASES = frozenset(
    p.value for p in (GamePhase.HIDING_PERIOD, GamePhase.SEEKING, GamePhase.END_GAME, GamePhase.ROUND_COMPLETE)
)


class HidingDurationTimer(PhaseTimer):
    """
    Chronomètre du temps de cachette du round.
    - Démarre à l'entrée en recherche, se fige à round-complete (valeur finale conservée).
    - Mis en pause (pas remis à zéro) pendant une période Move, reprend ensuite.
    """
    key = "timer:hiding-duration"
    countdown = False
    valid_phases = frozenset({GamePhase.SEEKING, GamePhase.END_GAME, GamePhase.ROUND_COMPLETE})

    def is_valid_phase(self) -> bool:
        if self.session.phase == GamePhase.HIDING_PERIOD:
            return self.session.move_active
        return super().is_valid_phase()

    def _fresh_on_mount(self) -> bool:
        return self.session.phase in (GamePhase.SEEKING, GamePhase.END_GAME)

    def _accepts_record_phase(self, phase: str) -> bool:
        # le chronomètre couvre tout le round : un enregistrement pris dans une
        # phase antérieure du même round reste valable
        return phase in RECORDABLE_DURATION_PHASES

    def _settle_restored(self) -> None:
        phase = self.session.phase
        if phase == GamePhase.ROUND_COMPLETE and self.timer.is_running:
            self.timer.stop()
        elif phase == GamePhase.HIDING_PERIOD:
            self.timer.pause()

    def on_phase_change(self, old: GamePhase, new: GamePhase, move: bool) -> None:
        if new == GamePhase.HIDING_PERIOD and move:
            self.timer.pause()
            self.persist()
        elif new == GamePhase.SEEKING and old == GamePhase.HIDING_PERIOD:
            if move and self.timer.is_running:
                if not self.session.is_paused:
                    self.timer.resume()
                self.persist()
            else:
                self.start_fresh()
        elif new == GamePhase.END_GAME:
            self.persist()
        elif new == GamePhase.ROUND_COMPLETE:
            self.timer.stop()
            self.persist()
        elif new in (GamePhase.SETUP, GamePhase.GAME_OVER):
            self.stop_and_discard()

    def _handle_pause_event(self, event: Event) -> None:
        # pendant un Move, la reprise de partie ne relance pas le chronomètre
        if not event.payload.get("is_paused") and self.session.move_active:
            return
        super()._handle_pause_event(event)

    @property
    def final_time_ms(self) -> int:
        return self.timer.elapsed


class QuestionResponseTimer(PhaseTimer):
    """Compte à rebours de réponse du cacheur à la question en cours."""
    key = "timer:question-response"
    countdown = True
    valid_phases = frozenset({GamePhase.SEEKING, GamePhase.END_GAME})
    autostart = False

    LOW_TIME_MESSAGE = "1 minute left to answer!"
    EXPIRED_MESSAGE = "Time's up! The question response time has expired"

    def __init__(self, *args, **kwargs) -> None:
        self.question_id: Optional[str] = None
        self.category_id: Optional[str] = None
        self.low_time_alerted = False
        super().__init__(*args, **kwargs)
        self.bus.subscribe(QUESTION_ASKED, self._handle_asked)
        self.bus.subscribe(QUESTION_ANSWERED, self._handle_resolved)
        self.bus.subscribe(QUESTION_VETOED, self._handle_resolved)
        self.bus.subscribe(QUESTION_RANDOMIZED, self._handle_randomized)

    def bound_ms(self) -> Optional[int]:
        if self.category_id is None:
            return None
        return CATALOG.response_time_ms(self.category_id, self.session.game_size)

    def context(self) -> Dict[str, Any]:
        return {
            **super().context(),
            "question_id": self.question_id,
            "category_id": self.category_id,
            "low_time_alerted": self.low_time_alerted,
        }

    def _context_matches(self, context: Dict[str, Any]) -> bool:
        if not super()._context_matches(context):
            return False
        if CATALOG.response_time_ms(context.get("category_id") or "", self.session.game_size) is None:
            return False
        # la borne dépend de la catégorie : elle doit être connue avant le calcul de dérive
        self.question_id = context.get("question_id")
        self.category_id = context.get("category_id")
        return True

    def _restore_context(self, context: Dict[str, Any]) -> None:
        self.low_time_alerted = bool(context.get("low_time_alerted"))

    def _reset_context(self) -> None:
        self.low_time_alerted = False

    def begin(self, question_id: str) -> ActionResult:
        if not self.is_valid_phase():
            return ActionResult.fail("Questions can only be timed while seeking")
        question = QUESTION_BANK.get(question_id)
        if question is None:
            return ActionResult.fail("Question not found")
        category_id = question.category_id
        if CATALOG.response_time_ms(category_id, self.session.game_size) is None:
            return ActionResult.fail("Unknown question category")
        self.question_id = question_id
        self.category_id = category_id
        self.start_fresh()
        logger.info("Question timer started", extra={"question_id": question_id, "category_id": category_id})
        return ActionResult.ok()

    def clear(self) -> None:
        self.stop_and_discard()
        self.question_id = None
        self.category_id = None

    def rehydrate(self) -> bool:
        restored = super().rehydrate()
        if not restored:
            self.question_id = None
            self.category_id = None
        return restored

    def on_phase_change(self, old: GamePhase, new: GamePhase, move: bool) -> None:
        if new not in self.valid_phases and self.question_id is not None:
            self.clear()

    def _handle_asked(self, event: Event) -> None:
        result = self.begin(event.payload["question_id"])
        if not result.success:
            logger.warning(
                "Question timer not started",
                extra={"question_id": event.payload["question_id"], "error": result.error},
            )

    def _handle_resolved(self, event: Event) -> None:
        if self.question_id == event.payload["question_id"]:
            self.clear()

    def _handle_randomized(self, event: Event) -> None:
        # même catégorie : le compte à rebours continue pour la nouvelle question
        if self.question_id == event.payload["old_question_id"]:
            self.question_id = event.payload["question_id"]
            if self.timer.is_running:
                self.persist()

    def on_tick(self, elapsed: int) -> None:
        remaining = self.timer.remaining or 0
        if not self.low_time_alerted and 0 < remaining <= settings.RESPONSE_LOW_TIME_MS:
            self.low_time_alerted = True
            self.notifier.show_toast(self.LOW_TIME_MESSAGE, "warning")

    def on_complete(self) -> None:
        self.notifier.show_toast(self.EXPIRED_MESSAGE, "error")
        self.question_id = None
        self.category_id = None

    def status(self) -> Dict[str, Any]:
        return {**super().status(), "question_id": self.question_id, "category_id": self.category_id}

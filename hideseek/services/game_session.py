"""
Service: game_session.py
Rôle:
- Racine de composition : une `GameSession` par partie, construite une fois et passée
  aux routes (aucun état mutable au niveau module).
- Assemble bus, machine à états, paquet, questions, les trois timers et le veilleur
  de malédictions.

API:
- mount()         : réhydrate session, paquet, questions puis timers (ordre imposé : la phase
                    courante doit être connue avant de juger les enregistrements de timers).
- end_round()     : fige le chronomètre, ajoute les bonus (main + pièges), lève les
                    malédictions du round, enregistre le temps et remet un paquet neuf.
- reset_game()    : retour au setup (joueurs effacés, paquet neuf, questions effacées).
- ask_question() / answer_question() : question des chercheurs; la réponse fait piocher
                    le cacheur (« piocher X, garder Y » de la catégorie).
- handle_visibility_change(is_returning_to_foreground)
- snapshot()      : vue complète pour l'UI.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, List, Optional

from hideseek.config.settings import settings
from hideseek.models.player import ActionResult, GamePhase, GameSize, RoundSummary
from hideseek.models.question import QuestionActionResult
from .curse_watcher import CurseWatcher
from .deck_engine import DeckEngine
from .events import EventBus
from .notifications import NotificationGateway, WebSocketNotifier
from .persistence import JsonFileStorage, PersistenceGateway
from .question_engine import QuestionEngine
from .session_machine import SessionStateMachine
from .timer import wall_clock_ms
from .timer_consumers import HidingDurationTimer, HidingPeriodTimer, PhaseTimer, QuestionResponseTimer
from .ws_manager import WSManager

logger = logging.getLogger(__name__)


class GameSession:
    def __init__(
        self,
        storage: Optional[PersistenceGateway] = None,
        notifier: Optional[NotificationGateway] = None,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
        ws: Optional[WSManager] = None,
    ) -> None:
        self.storage = storage if storage is not None else JsonFileStorage()
        self.ws = ws or WSManager()
        self.notifier = notifier or WebSocketNotifier(self.ws)
        self.clock = clock or wall_clock_ms
        self.rng = rng or random.Random()
        self.bus = EventBus()

        self.session = SessionStateMachine(self.storage, self.bus, GameSize(settings.DEFAULT_GAME_SIZE))
        self.questions = QuestionEngine(self.storage, self.bus, self.clock, self.rng, self.session)
        self.deck = DeckEngine(
            self.storage, self.bus, self.notifier, self.clock, self.rng, self.session, self.questions
        )

        timer_args = (self.session, self.storage, self.bus, self.notifier, self.clock)
        self.hiding_period = HidingPeriodTimer(*timer_args)
        self.hiding_duration = HidingDurationTimer(*timer_args)
        self.question = QuestionResponseTimer(*timer_args)

        self.curse_watcher = CurseWatcher(self.deck, settings.CURSE_POLL_SECONDS)
        self.last_round: Optional[RoundSummary] = None
        self._mounted = False

    @property
    def timers(self) -> List[PhaseTimer]:
        return [self.hiding_period, self.hiding_duration, self.question]

    def mount(self) -> None:
        if self._mounted:
            return
        self.session.rehydrate()
        self.deck.rehydrate()
        self.questions.rehydrate()
        for t in self.timers:
            t.mount()
        self.curse_watcher.start()
        self._mounted = True
        logger.info(
            "Game session mounted",
            extra={"phase": self.session.phase.value, "round_number": self.session.round_number},
        )

    def shutdown(self) -> None:
        self.curse_watcher.stop()
        for t in self.timers:
            t.handle_visibility_change(False)
            t.timer.suspend()

    # ---------- commandes composées ----------
    def end_round(self) -> ActionResult:
        if self.session.phase != GamePhase.ROUND_COMPLETE:
            return ActionResult.fail("Cannot end round from current phase")
        size = self.session.game_size
        measured = self.hiding_duration.final_time_ms
        bonus = self.deck.round_bonus_ms(size)
        hider = self.session.current_hider
        summary = RoundSummary(
            round_number=self.session.round_number,
            hider_id=hider.id if hider else None,
            measured_ms=measured,
            bonus_ms=bonus,
            total_ms=measured + bonus,
        )
        self.deck.clear_round_curses()
        result = self.session.end_round(summary.total_ms)
        if result.success:
            self.deck.reset()
            self.questions.reset()
            self.last_round = summary
            logger.info("Round ended", extra=summary.model_dump())
        return result

    def reset_game(self) -> ActionResult:
        result = self.session.reset_game()
        self.deck.reset()
        self.questions.reset()
        self.last_round = None
        return result

    def ask_question(self, question_id: str) -> QuestionActionResult:
        # les cartes de la question précédente doivent être triées avant d'en piocher d'autres
        if self.deck.pending_selection is not None:
            return QuestionActionResult.fail("Resolve the pending card selection first")
        return self.questions.ask_question(question_id)

    def answer_question(self, question_id: str, answer: str) -> QuestionActionResult:
        """Enregistre la réponse puis fait piocher le cacheur selon la catégorie."""
        result = self.questions.answer_question(question_id, answer)
        if not result.success:
            return result
        drawn = []
        if self.deck.deck_size:
            draw = self.deck.draw_for_selection(result.cards_draw, result.cards_keep)
            if draw.success:
                drawn = draw.drawn_cards
            else:
                logger.warning(
                    "No cards drawn for answer", extra={"question_id": question_id, "error": draw.error}
                )
        return result.model_copy(update={"drawn_cards": drawn})

    def handle_visibility_change(self, is_returning_to_foreground: bool) -> None:
        for t in self.timers:
            t.handle_visibility_change(is_returning_to_foreground)
        if is_returning_to_foreground:
            self.curse_watcher.poll()

    # ---------- vue ----------
    def snapshot(self) -> Dict[str, Any]:
        size = self.session.game_size
        deck = self.deck
        return {
            "session": self.session.state.model_dump(mode="json"),
            "ranking": [p.model_dump(mode="json") for p in self.session.players_ranked_by_time],
            "all_players_have_been_hider": self.session.all_players_have_been_hider,
            "deck": {
                "hand": [c.model_dump(mode="json") for c in deck.hand],
                "hand_limit": deck.hand_limit,
                "deck_size": deck.deck_size,
                "discard_count": len(deck.discard_pile),
                "pending_selection": (
                    deck.pending_selection.model_dump(mode="json") if deck.pending_selection else None
                ),
                "active_curses": [
                    {**c.model_dump(mode="json"), "remaining_ms": deck.curse_remaining_ms(c.instance_id)}
                    for c in deck.active_curses
                ],
                "active_time_traps": [t.model_dump(mode="json") for t in deck.active_time_traps],
                "total_time_bonus_minutes": deck.total_time_bonus(size),
            },
            "questions": {
                "pending": (
                    self.questions.pending_question.model_dump(mode="json")
                    if self.questions.pending_question else None
                ),
                "asked": [q.model_dump(mode="json") for q in self.questions.asked_questions],
                "available_count": len(self.questions.get_available_questions_for_size(size)),
            },
            "timers": {
                "hiding_period": self.hiding_period.status(),
                "hiding_duration": self.hiding_duration.status(),
                "question_response": self.question.status(),
            },
            "last_round": self.last_round.model_dump() if self.last_round else None,
        }

"""
Service: question_engine.py
Rôle:
- Questions posées par les chercheurs pendant la recherche : question en attente,
  historique des questions répondues, questions encore disponibles.
- Donne au paquet le nombre de cartes « piocher X, garder Y » de la catégorie
  (réponse ou veto), et remplace une question par une autre de la même catégorie (Randomize).

Invariants:
- Au plus une question en attente.
- Une question répondue ne peut plus être posée pendant le round; une question vetoée
  redevient disponible.
- Toute mutation réussie persiste l'état sous la clé `questions`.

Événements publiés:
- question_asked / question_answered / question_vetoed {question_id, category_id}
- question_randomized {old_question_id, question_id, category_id}
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, List, Optional

from pydantic import ValidationError

from hideseek.models.event import (
    PHASE_CHANGED,
    QUESTION_ANSWERED,
    QUESTION_ASKED,
    QUESTION_RANDOMIZED,
    QUESTION_VETOED,
    Event,
)
from hideseek.models.player import GamePhase, GameSize
from hideseek.models.question import (
    AskedQuestion,
    CategoryStats,
    PersistedQuestionState,
    Question,
    QuestionActionResult,
)
from .catalog import CATALOG, QUESTION_BANK, QuestionBank
from .events import EventBus
from .persistence import PersistenceGateway
from .session_machine import SessionStateMachine

logger = logging.getLogger(__name__)

STORAGE_KEY = "questions"

# Phases où une question peut être posée / rester en attente
ASKING_PHASES = (GamePhase.SEEKING, GamePhase.END_GAME)


class QuestionEngine:
    def __init__(
        self,
        storage: PersistenceGateway,
        bus: EventBus,
        clock: Callable[[], int],
        rng: Optional[random.Random] = None,
        session: Optional[SessionStateMachine] = None,
        bank: QuestionBank = QUESTION_BANK,
    ) -> None:
        self.storage = storage
        self.bus = bus
        self.clock = clock
        self.rng = rng or random.Random()
        self.session = session
        self.bank = bank
        self._lock = RLock()
        self._state = PersistedQuestionState()
        bus.subscribe(PHASE_CHANGED, self._handle_phase_event)

    # ---------- lecture ----------
    @property
    def asked_questions(self) -> List[AskedQuestion]:
        return [q.model_copy() for q in self._state.asked_questions]

    @property
    def pending_question(self) -> Optional[AskedQuestion]:
        pending = self._state.pending_question
        return pending.model_copy() if pending else None

    @property
    def has_pending_question(self) -> bool:
        return self._state.pending_question is not None

    def get_question(self, question_id: str) -> Optional[Question]:
        return self.bank.get(question_id)

    def _asked_ids(self) -> set:
        return {q.question_id for q in self._state.asked_questions}

    def get_available_questions(self, category_id: Optional[str] = None) -> List[Question]:
        """Questions jamais répondues, éventuellement filtrées par catégorie."""
        asked = self._asked_ids()
        return [
            q for q in self.bank.all()
            if q.id not in asked and (category_id is None or q.category_id == category_id)
        ]

    def get_available_questions_for_size(
        self, game_size: GameSize, category_id: Optional[str] = None
    ) -> List[Question]:
        return [q for q in self.get_available_questions(category_id) if game_size in q.available_in]

    def get_category_stats(self) -> List[CategoryStats]:
        asked = self._asked_ids()
        stats = []
        for category_id in CATALOG.category_ids():
            questions = self.bank.by_category(category_id)
            asked_count = sum(1 for q in questions if q.id in asked)
            draw, keep = CATALOG.draw_keep(category_id)
            stats.append(CategoryStats(
                category_id=category_id,
                name=CATALOG.category_name(category_id),
                total=len(questions),
                available=len(questions) - asked_count,
                asked=asked_count,
                cards_draw=draw,
                cards_keep=keep,
            ))
        return stats

    # ---------- persistance ----------
    def _persist(self) -> None:
        self.storage.save(STORAGE_KEY, self._state.model_dump(mode="json"))

    def rehydrate(self) -> bool:
        raw = self.storage.load(STORAGE_KEY)
        if raw is None:
            return False
        try:
            restored = PersistedQuestionState.model_validate(raw)
        except (ValidationError, TypeError):
            logger.warning("Discarding unreadable question state", extra={"storage_key": STORAGE_KEY})
            self.storage.remove(STORAGE_KEY)
            return False
        with self._lock:
            self._state = restored
        logger.info(
            "Questions rehydrated",
            extra={"asked": len(restored.asked_questions), "pending": restored.pending_question is not None},
        )
        return True

    # ---------- actions ----------
    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock() / 1000, tz=timezone.utc)

    def _check_pending(self, question_id: str) -> Optional[QuestionActionResult]:
        pending = self._state.pending_question
        if pending is None:
            return QuestionActionResult.fail("No question is pending")
        if pending.question_id != question_id:
            return QuestionActionResult.fail("Question ID does not match pending question")
        return None

    def ask_question(self, question_id: str) -> QuestionActionResult:
        """Met la question en attente et renvoie le « piocher X, garder Y » de sa catégorie."""
        with self._lock:
            if self.session is not None and self.session.phase not in ASKING_PHASES:
                return QuestionActionResult.fail("Questions can only be asked while seeking")
            if self._state.pending_question is not None:
                return QuestionActionResult.fail("A question is already pending")
            question = self.bank.get(question_id)
            if question is None:
                return QuestionActionResult.fail("Question not found")
            if question_id in self._asked_ids():
                return QuestionActionResult.fail("Question has already been asked")
            draw_keep = CATALOG.draw_keep(question.category_id)
            if draw_keep is None:
                return QuestionActionResult.fail("Question category not found")
            self._state.pending_question = AskedQuestion(
                question_id=question_id,
                category_id=question.category_id,
                asked_at=self._now(),
            )
            self._persist()
            self.bus.publish(QUESTION_ASKED, {"question_id": question_id, "category_id": question.category_id})
        logger.info("Question asked", extra={"question_id": question_id, "category_id": question.category_id})
        return QuestionActionResult(
            success=True, question_id=question_id, cards_draw=draw_keep[0], cards_keep=draw_keep[1]
        )

    def answer_question(self, question_id: str, answer: str) -> QuestionActionResult:
        with self._lock:
            refused = self._check_pending(question_id)
            if refused:
                return refused
            answered = self._state.pending_question.model_copy(
                update={"answer": answer, "answered_at": self._now(), "vetoed": False}
            )
            self._state.asked_questions.append(answered)
            self._state.pending_question = None
            self._persist()
            self.bus.publish(QUESTION_ANSWERED, {"question_id": question_id, "category_id": answered.category_id})
        draw, keep = CATALOG.draw_keep(answered.category_id)
        logger.info("Question answered", extra={"question_id": question_id})
        return QuestionActionResult(success=True, question_id=question_id, cards_draw=draw, cards_keep=keep)

    def veto_question(self, question_id: str) -> QuestionActionResult:
        """Annule la question en attente; elle redevient disponible mais le cacheur pioche quand même."""
        with self._lock:
            refused = self._check_pending(question_id)
            if refused:
                return refused
            category_id = self._state.pending_question.category_id
            self._state.pending_question = None
            self._persist()
            self.bus.publish(QUESTION_VETOED, {"question_id": question_id, "category_id": category_id})
        draw, keep = CATALOG.draw_keep(category_id)
        logger.info("Question vetoed", extra={"question_id": question_id})
        return QuestionActionResult(success=True, question_id=question_id, cards_draw=draw, cards_keep=keep)

    def randomize_question(self, question_id: str) -> QuestionActionResult:
        """Remplace la question en attente par une autre, non posée, de la même catégorie."""
        with self._lock:
            refused = self._check_pending(question_id)
            if refused:
                return refused
            pending = self._state.pending_question
            candidates = [
                q for q in self.get_available_questions(pending.category_id) if q.id != question_id
            ]
            if not candidates:
                return QuestionActionResult.fail("No other questions available in this category")
            new_question = self.rng.choice(candidates)
            # l'heure de la question d'origine est conservée
            self._state.pending_question = pending.model_copy(update={"question_id": new_question.id})
            self._persist()
            self.bus.publish(QUESTION_RANDOMIZED, {
                "old_question_id": question_id,
                "question_id": new_question.id,
                "category_id": new_question.category_id,
            })
        logger.info("Question randomized", extra={"old_question_id": question_id, "question_id": new_question.id})
        return QuestionActionResult(success=True, question_id=question_id, new_question_id=new_question.id)

    def drop_pending(self) -> None:
        with self._lock:
            if self._state.pending_question is None:
                return
            logger.info("Pending question dropped", extra={"question_id": self._state.pending_question.question_id})
            self._state.pending_question = None
            self._persist()

    def reset(self) -> None:
        """Historique et question en attente effacés (nouveau round ou nouvelle partie)."""
        with self._lock:
            self._state = PersistedQuestionState()
            self._persist()

    def _handle_phase_event(self, event: Event) -> None:
        if event.payload["new"] not in ASKING_PHASES:
            self.drop_pending()

"""
Service: session_machine.py
Rôle:
- Machine à états de la partie : joueurs, phase, round, pause.
- Seul écrivain des joueurs et de la phase; persiste `game` après chaque mutation.

Transitions:
    setup --start_round--> hiding-period --start_seeking--> seeking
    seeking --enter_hiding_zone--> end-game --hider_found--> round-complete
    seeking --hider_found--> round-complete (zone de fin optionnelle)
    round-complete --end_round--> setup | game-over
    seeking/end-game --grant_move_hiding_period--> hiding-period (powerup Move)

Événements publiés (bus):
- phase_changed {old, new, move}
- pause_changed {is_paused}

Notes:
- Un mauvais usage (UI périmée) renvoie ActionResult(success=False), sans exception
  et sans modifier l'état.
"""
from __future__ import annotations

import logging
from threading import RLock
from typing import List, Optional
from uuid import uuid4

from pydantic import ValidationError

from hideseek.models.event import PAUSE_CHANGED, PHASE_CHANGED
from hideseek.models.player import ActionResult, GamePhase, GameSize, Player, SessionState
from .catalog import CATALOG
from .events import EventBus
from .persistence import PersistenceGateway

logger = logging.getLogger(__name__)

STORAGE_KEY = "game"

_PAUSABLE = (
    GamePhase.HIDING_PERIOD,
    GamePhase.SEEKING,
    GamePhase.END_GAME,
    GamePhase.ROUND_COMPLETE,
)


class SessionStateMachine:
    def __init__(
        self,
        storage: PersistenceGateway,
        bus: EventBus,
        game_size: GameSize = GameSize.SMALL,
    ) -> None:
        self.storage = storage
        self.bus = bus
        self._lock = RLock()
        self._state = SessionState(game_size=game_size)

    # ---------- lecture ----------
    @property
    def state(self) -> SessionState:
        return self._state.model_copy(deep=True)

    @property
    def phase(self) -> GamePhase:
        return self._state.phase

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def round_number(self) -> int:
        return self._state.round_number

    @property
    def game_size(self) -> GameSize:
        return self._state.game_size

    @property
    def move_active(self) -> bool:
        return self._state.move_active

    @property
    def players(self) -> List[Player]:
        return [p.model_copy() for p in self._state.players]

    def get_player(self, player_id: str) -> Optional[Player]:
        for p in self._state.players:
            if p.id == player_id:
                return p.model_copy()
        return None

    @property
    def current_hider(self) -> Optional[Player]:
        if self._state.current_hider_id is None:
            return None
        return self.get_player(self._state.current_hider_id)

    @property
    def seekers(self) -> List[Player]:
        return [p.model_copy() for p in self._state.players if p.id != self._state.current_hider_id]

    @property
    def players_who_havent_been_hider(self) -> List[Player]:
        return [p.model_copy() for p in self._state.players if not p.has_been_hider]

    @property
    def players_ranked_by_time(self) -> List[Player]:
        # sorted() est stable : à égalité, l'ordre d'inscription est conservé
        return sorted(self.players, key=lambda p: -p.total_hiding_time_ms)

    @property
    def all_players_have_been_hider(self) -> bool:
        return bool(self._state.players) and all(p.has_been_hider for p in self._state.players)

    def hiding_period_ms(self) -> int:
        """Durée de la période de cachette en cours (surcharge Move prioritaire)."""
        if self._state.hiding_period_override_ms is not None:
            return self._state.hiding_period_override_ms
        return CATALOG.hiding_period_ms(self._state.game_size)

    # ---------- persistance ----------
    def _persist(self) -> None:
        self.storage.save(STORAGE_KEY, self._state.model_dump(mode="json"))

    def rehydrate(self) -> bool:
        """Recharge l'état persisté; un enregistrement illisible est supprimé."""
        raw = self.storage.load(STORAGE_KEY)
        if raw is None:
            return False
        try:
            restored = SessionState.model_validate(raw)
        except (ValidationError, TypeError):
            logger.warning("Discarding unreadable session state", extra={"storage_key": STORAGE_KEY})
            self.storage.remove(STORAGE_KEY)
            return False
        with self._lock:
            self._state = restored
        logger.info(
            "Session rehydrated",
            extra={"phase": restored.phase.value, "round_number": restored.round_number},
        )
        return True

    def _set_phase(self, new: GamePhase, *, move: bool = False) -> None:
        old = self._state.phase
        self._state.phase = new
        self._persist()
        logger.info("Phase change %s -> %s", old.value, new.value, extra={"move": move})
        self.bus.publish(PHASE_CHANGED, {"old": old, "new": new, "move": move})

    # ---------- setup ----------
    def add_player(self, name: str) -> ActionResult:
        name = (name or "").strip()
        with self._lock:
            if self._state.phase != GamePhase.SETUP:
                return ActionResult.fail("Players can only be added during setup")
            if not name:
                return ActionResult.fail("Player name is required")
            player = Player(id=uuid4().hex, name=name)
            self._state.players.append(player)
            self._persist()
        return ActionResult.ok(player.id)

    def remove_player(self, player_id: str) -> ActionResult:
        with self._lock:
            if self._state.phase != GamePhase.SETUP:
                return ActionResult.fail("Players can only be removed during setup")
            before = len(self._state.players)
            self._state.players = [p for p in self._state.players if p.id != player_id]
            if len(self._state.players) == before:
                return ActionResult.fail("Player not found")
            self._persist()
        return ActionResult.ok(player_id)

    def set_game_size(self, size: GameSize) -> ActionResult:
        with self._lock:
            if self._state.phase != GamePhase.SETUP:
                return ActionResult.fail("Game size can only be changed during setup")
            self._state.game_size = GameSize(size)
            self._persist()
        return ActionResult.ok()

    # ---------- cycle de round ----------
    def start_round(self, hider_id: str) -> ActionResult:
        with self._lock:
            if self._state.phase != GamePhase.SETUP:
                return ActionResult.fail("Cannot start round from current phase")
            if len(self._state.players) < 2:
                return ActionResult.fail("At least 2 players are required")
            hider = next((p for p in self._state.players if p.id == hider_id), None)
            if hider is None:
                return ActionResult.fail("Player not found")
            hider.has_been_hider = True
            self._state.current_hider_id = hider.id
            self._state.round_number += 1
            self._state.hiding_period_override_ms = None
            self._state.move_active = False
            self._state.is_paused = False
            self._set_phase(GamePhase.HIDING_PERIOD)
        return ActionResult.ok(hider.id)

    def start_seeking(self) -> ActionResult:
        with self._lock:
            if self._state.phase != GamePhase.HIDING_PERIOD:
                return ActionResult.fail("Cannot start seeking from current phase")
            was_move = self._state.move_active
            self._state.move_active = False
            self._state.hiding_period_override_ms = None
            self._set_phase(GamePhase.SEEKING, move=was_move)
        return ActionResult.ok()

    def enter_hiding_zone(self) -> ActionResult:
        with self._lock:
            if self._state.phase != GamePhase.SEEKING:
                return ActionResult.fail("Cannot enter hiding zone from current phase")
            self._set_phase(GamePhase.END_GAME)
        return ActionResult.ok()

    def hider_found(self) -> ActionResult:
        with self._lock:
            if self._state.phase not in (GamePhase.SEEKING, GamePhase.END_GAME):
                return ActionResult.fail("Cannot mark hider found from current phase")
            self._set_phase(GamePhase.ROUND_COMPLETE)
        return ActionResult.ok()

    def end_round(self, hiding_time_ms: int) -> ActionResult:
        with self._lock:
            if self._state.phase != GamePhase.ROUND_COMPLETE:
                return ActionResult.fail("Cannot end round from current phase")
            if hiding_time_ms < 0:
                return ActionResult.fail("Hiding time must not be negative")
            hider_id = self._state.current_hider_id
            for p in self._state.players:
                if p.id == hider_id:
                    p.total_hiding_time_ms += int(hiding_time_ms)
            self._state.current_hider_id = None
            self._state.is_paused = False
            self._state.move_active = False
            self._state.hiding_period_override_ms = None
            nxt = GamePhase.GAME_OVER if self.all_players_have_been_hider else GamePhase.SETUP
            self._set_phase(nxt)
        return ActionResult.ok(hider_id)

    def grant_move_hiding_period(self, duration_ms: int) -> ActionResult:
        """Powerup Move : rouvre une période de cachette de `duration_ms`."""
        with self._lock:
            if self._state.phase not in (GamePhase.SEEKING, GamePhase.END_GAME):
                return ActionResult.fail("Move can only be played while seekers are seeking")
            self._state.hiding_period_override_ms = int(duration_ms)
            self._state.move_active = True
            self._set_phase(GamePhase.HIDING_PERIOD, move=True)
        return ActionResult.ok()

    # ---------- pause ----------
    def pause_game(self) -> ActionResult:
        with self._lock:
            if self._state.phase not in _PAUSABLE:
                return ActionResult.fail("Cannot pause outside an active round")
            if self._state.is_paused:
                return ActionResult.fail("Game is already paused")
            self._state.is_paused = True
            self._persist()
            self.bus.publish(PAUSE_CHANGED, {"is_paused": True})
        return ActionResult.ok()

    def resume_game(self) -> ActionResult:
        with self._lock:
            if not self._state.is_paused:
                return ActionResult.fail("Game is not paused")
            self._state.is_paused = False
            self._persist()
            self.bus.publish(PAUSE_CHANGED, {"is_paused": False})
        return ActionResult.ok()

    # ---------- retour au setup ----------
    def reset_game(self) -> ActionResult:
        with self._lock:
            old = self._state.phase
            self._state = SessionState(game_size=self._state.game_size)
            self._persist()
            if old != GamePhase.SETUP:
                logger.info("Game reset from %s", old.value)
                self.bus.publish(PHASE_CHANGED, {"old": old, "new": GamePhase.SETUP, "move": False})
        return ActionResult.ok()

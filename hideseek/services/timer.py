"""
Service: timer.py
Rôle:
- `PersistentTimer` : chronomètre générique (compte à rebours ou compteur montant)
  utilisé par toutes les horloges de la partie.

Principe (correction de dérive):
- On ne compte jamais les ticks. Le temps écoulé est recalculé à chaque lecture :
      elapsed = elapsed_at_anchor + (now - anchor)
  `anchor` est l'instant (ms, horloge murale) du dernier start/resume.
- Les ticks ne servent qu'à notifier (`on_tick`) et à détecter la fin d'un compte à rebours.

Planification:
- Si une boucle asyncio tourne, une tâche appelle `tick()` toutes les `tick_interval_ms`.
- Sans boucle (tests, usage synchrone), l'appelant pilote `tick()` lui-même.

Notes:
- stop() fige la valeur finale (lue plus tard), reset() la remet à zéro.
- on_complete n'est appelé qu'une fois par démarrage.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from hideseek.config.settings import settings

logger = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class PersistentTimer:
    def __init__(
        self,
        *,
        countdown: bool = False,
        initial_time_ms: int = 0,
        tick_interval_ms: Optional[int] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self.countdown = countdown
        self.initial_time_ms = initial_time_ms
        self.tick_interval_ms = tick_interval_ms or settings.TIMER_TICK_MS
        self.on_tick = on_tick
        self.on_complete = on_complete
        self.clock = clock

        self.is_running = False
        self.is_paused = False
        self._elapsed_at_anchor = 0
        self._anchor: Optional[int] = None
        self._completed = False
        self._task: Optional[asyncio.Task] = None

    # ---------- lecture ----------
    @property
    def elapsed(self) -> int:
        value = self._elapsed_at_anchor
        if self.is_running and not self.is_paused and self._anchor is not None:
            value += max(0, self.clock() - self._anchor)
        if self.countdown:
            value = min(value, self.initial_time_ms)
        return value

    @property
    def remaining(self) -> Optional[int]:
        if not self.countdown:
            return None
        return max(0, self.initial_time_ms - self.elapsed)

    # ---------- planification ----------
    def _schedule(self) -> None:
        self._cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._run())

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while self.is_running and not self.is_paused:
            await asyncio.sleep(self.tick_interval_ms / 1000)
            self.tick()

    # ---------- commandes ----------
    def start(self, initial_elapsed_ms: int = 0) -> None:
        self._elapsed_at_anchor = max(0, int(initial_elapsed_ms))
        self._anchor = self.clock()
        self.is_running = True
        self.is_paused = False
        self._completed = False
        self._schedule()

    def restore(self, elapsed_ms: int, *, running: bool = True, paused: bool = False) -> None:
        """Réinstalle un état persisté sans déclencher de fin rétroactive."""
        self._cancel()
        self._elapsed_at_anchor = max(0, int(elapsed_ms))
        self._completed = False
        self.is_running = running
        self.is_paused = running and paused
        self._anchor = self.clock() if running and not paused else None
        if self.is_running and not self.is_paused:
            self._schedule()

    def pause(self) -> None:
        if not self.is_running or self.is_paused:
            return
        self._elapsed_at_anchor = self.elapsed
        self._anchor = None
        self.is_paused = True
        self._cancel()

    def resume(self) -> None:
        if not self.is_running or not self.is_paused:
            return
        self._anchor = self.clock()
        self.is_paused = False
        self._schedule()

    def stop(self) -> None:
        if self.is_running:
            self._elapsed_at_anchor = self.elapsed
        self._anchor = None
        self.is_running = False
        self.is_paused = False
        self._cancel()

    def reset(self) -> None:
        self._cancel()
        self._elapsed_at_anchor = 0
        self._anchor = None
        self.is_running = False
        self.is_paused = False
        self._completed = False

    def tick(self) -> None:
        if not self.is_running or self.is_paused:
            return
        elapsed = self.elapsed
        if self.on_tick is not None:
            self.on_tick(elapsed)
        if self.countdown and elapsed >= self.initial_time_ms and not self._completed:
            self._completed = True
            self._elapsed_at_anchor = self.initial_time_ms
            self._anchor = None
            self.is_running = False
            self._cancel()
            logger.debug("Countdown complete", extra={"initial_time_ms": self.initial_time_ms})
            if self.on_complete is not None:
                self.on_complete()

    def suspend(self) -> None:
        """Annule les ticks planifiés sans toucher à l'état (arrêt du process)."""
        self._cancel()

    def handle_visibility_change(self, is_returning_to_foreground: bool) -> None:
        """Au retour au premier plan : recalcul depuis l'ancre puis reprise des ticks."""
        if not is_returning_to_foreground:
            return
        if self.is_running and not self.is_paused:
            self.tick()
            if self.is_running:
                self._schedule()

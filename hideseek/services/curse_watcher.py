"""
Service: curse_watcher.py
Rôle:
- Scrutation périodique (CURSE_POLL_SECONDS, 1 s par défaut) des malédictions à durée.
- Chaque malédiction expirée est levée par le moteur de paquet (raison "expired").

Notes:
- `poll()` est synchrone et pilotable à la main (tests); `start()` lance la boucle
  asyncio si une loop tourne.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from hideseek.models.card import ActiveCurse
from .deck_engine import DeckEngine

logger = logging.getLogger(__name__)


class CurseWatcher:
    def __init__(self, deck: DeckEngine, poll_seconds: float = 1.0) -> None:
        self.deck = deck
        self.poll_seconds = poll_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def poll(self) -> List[ActiveCurse]:
        if not self.deck.has_time_based_curses():
            return []
        return self.deck.check_curse_expiry()

    async def _run(self) -> None:
        while True:
            try:
                self.poll()
            except Exception:
                logger.exception("Curse expiry check failed")
            await asyncio.sleep(self.poll_seconds)

    def start(self) -> bool:
        if self.is_running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._task = loop.create_task(self._run())
        logger.debug("Curse watcher started", extra={"poll_seconds": self.poll_seconds})
        return True

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None

"""
Service: events.py
Rôle:
- Bus pub/sub synchrone et thread-safe, injecté dans les moteurs (pas de singleton global).
- Les abonnés reçoivent un `Event(name, payload)` dans l'ordre d'inscription.

Notes:
- Une exception levée par un abonné est journalisée puis ignorée : un consommateur
  défaillant ne doit pas empêcher la transition de phase qui a publié l'événement.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from threading import RLock
from typing import Any, Callable, DefaultDict, Dict, List

from hideseek.models.event import Event

logger = logging.getLogger(__name__)

Subscriber = Callable[[Event], None]


class EventBus:
    def __init__(self) -> None:
        self._subs: DefaultDict[str, List[Subscriber]] = defaultdict(list)
        self._lock = RLock()

    def subscribe(self, event_name: str, callback: Subscriber) -> Callable[[], None]:
        """Inscrit `callback` et retourne une fonction de désinscription."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            self._subs[event_name].append(callback)
        logger.debug("Subscribed %s to '%s'", getattr(callback, "__name__", str(callback)), event_name)
        return lambda: self.unsubscribe(event_name, callback)

    def unsubscribe(self, event_name: str, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subs.get(event_name, []):
                self._subs[event_name].remove(callback)

    def publish(self, event_name: str, payload: Dict[str, Any]) -> None:
        event = Event(name=event_name, payload=payload)
        with self._lock:
            subs = list(self._subs.get(event_name, []))
        logger.debug("Publishing '%s' to %d subscribers", event_name, len(subs))
        for cb in subs:
            try:
                cb(event)
            except Exception:
                logger.exception("Unhandled exception in event subscriber for '%s'", event_name)

    def subscriber_count(self, event_name: str) -> int:
        with self._lock:
            return len(self._subs.get(event_name, []))

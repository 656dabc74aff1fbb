"""
Service: notifications.py
Rôle:
- Contrat `NotificationGateway` consommé par les moteurs (fire-and-forget).
- Implémentation WebSocket : chaque notification devient un message typé
  {"type": "notification", "payload": {...}} diffusé aux écrans connectés.

Messages:
- notify_timer_warning()      -> "5 minutes remaining!" (warning)
- notify_hiding_period_ended() -> "Seeking begins now!" (info)
- show_toast(message, severity)

Notes:
- Un échec de diffusion est journalisé puis ignoré : il ne remonte jamais au moteur.
"""
from __future__ import annotations

import logging
from typing import Protocol

from hideseek.models.event import Severity, Toast
from .ws_manager import WSManager, ws_broadcast_type_safe

logger = logging.getLogger(__name__)

TIMER_WARNING_MESSAGE = "5 minutes remaining!"
HIDING_PERIOD_ENDED_MESSAGE = "Seeking begins now!"


class NotificationGateway(Protocol):
    def notify_timer_warning(self) -> None: ...

    def notify_hiding_period_ended(self) -> None: ...

    def show_toast(self, message: str, severity: Severity = "info") -> None: ...


class WebSocketNotifier:
    def __init__(self, manager: WSManager) -> None:
        self.manager = manager

    def _emit(self, kind: str, toast: Toast) -> None:
        payload = {"kind": kind, **toast.model_dump(mode="json")}
        try:
            ws_broadcast_type_safe(self.manager, "notification", payload)
        except Exception:
            logger.warning("Notification delivery failed", extra={"kind": kind}, exc_info=True)

    def notify_timer_warning(self) -> None:
        self._emit("timer_warning", Toast(message=TIMER_WARNING_MESSAGE, severity="warning"))

    def notify_hiding_period_ended(self) -> None:
        self._emit("hiding_period_ended", Toast(message=HIDING_PERIOD_ENDED_MESSAGE, severity="info"))

    def show_toast(self, message: str, severity: Severity = "info") -> None:
        self._emit("toast", Toast(message=message, severity=severity))

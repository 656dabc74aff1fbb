"""
Service: ws_manager.py
Rôle:
- Registre des écrans connectés en WebSocket (une partie = un appareil, mais
  plusieurs onglets/écrans peuvent suivre le même état).
- Mapping screen_id -> sockets ET socket -> screen_id, plus sockets anonymes (pending).
- Snapshots immuables pour éviter "set changed size during iteration".
- Wrappers sync (`ws_broadcast_type_safe`) utilisables depuis le code moteur synchrone.

Notes:
- Le manager est injecté dans la `GameSession` (pas de singleton global).
- Un envoi qui échoue retire la socket morte du registre et n'interrompt rien.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Awaitable, Dict, List, Set

import anyio
from starlette.websockets import WebSocket

from .io_utils import dumps

logger = logging.getLogger(__name__)


@dataclass
class WSManager:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # screen_id -> set(WebSocket)
    clients_by_screen: Dict[str, Set[WebSocket]] = field(default_factory=dict)
    # sockets pas encore identifiées
    pending: Set[WebSocket] = field(default_factory=set)
    # reverse map: socket -> screen_id
    ws_to_screen: Dict[WebSocket, str] = field(default_factory=dict)

    async def connect(self, ws: WebSocket) -> None:
        """Accepte la connexion WS et la place dans 'pending'."""
        await ws.accept()
        with self._lock:
            self.pending.add(ws)

    def _unlink(self, ws: WebSocket) -> None:
        with self._lock:
            self.pending.discard(ws)
            prev = self.ws_to_screen.pop(ws, None)
            if prev:
                bucket = self.clients_by_screen.get(prev)
                if bucket and ws in bucket:
                    bucket.discard(ws)
                    if not bucket:
                        self.clients_by_screen.pop(prev, None)

    async def disconnect(self, ws: WebSocket) -> None:
        self._unlink(ws)
        try:
            await ws.close()
        except Exception:
            # socket déjà fermée côté client
            logger.debug("Websocket already closed", exc_info=True)

    def identify(self, ws: WebSocket, screen_id: str) -> None:
        """Associe (ou ré-associe) une socket à un écran; idempotent."""
        with self._lock:
            self._unlink(ws)
            self.clients_by_screen.setdefault(screen_id, set()).add(ws)
            self.ws_to_screen[ws] = screen_id

    async def _send_one(self, ws: WebSocket, payload: Any) -> bool:
        try:
            await ws.send_text(dumps(payload).decode("utf-8"))
            return True
        except Exception:
            logger.debug("Dropping dead websocket", exc_info=True)
            self._unlink(ws)
            return False

    async def send_json(self, ws: WebSocket, payload: Any) -> bool:
        return await self._send_one(ws, payload)

    def _snapshot_all(self) -> List[WebSocket]:
        with self._lock:
            result: List[WebSocket] = []
            for bucket in self.clients_by_screen.values():
                result.extend(bucket)
            result.extend(self.pending)
            return result

    async def broadcast(self, payload: Any) -> int:
        """Diffuse à toutes les sockets (identifiées ou non); retourne le nombre de succès."""
        success = 0
        for ws in self._snapshot_all():
            if await self._send_one(ws, payload):
                success += 1
        return success

    async def broadcast_type(self, event_type: str, payload: Any) -> int:
        return await self.broadcast({"type": event_type, "payload": payload})

    def stats(self) -> dict:
        with self._lock:
            identified = {sid: len(conns) for sid, conns in self.clients_by_screen.items()}
            return {
                "identified": identified,
                "identified_total": sum(identified.values()),
                "pending_total": len(self.pending),
            }

    async def close_all(self) -> dict:
        for ws in self._snapshot_all():
            await self.disconnect(ws)
        return self.stats()


# =====================================================
# WRAPPERS SYNC (utilisables depuis les moteurs)
# =====================================================

def _run_async(coro: Awaitable[Any]) -> Any:
    """
    Exécute une coroutine depuis un contexte potentiellement synchrone.
    - anyio.from_thread.run si on est dans un worker anyio (route sync FastAPI).
    - Sinon, tâche fire-and-forget sur la loop courante si elle tourne,
      ou exécution directe via asyncio.run.
    """
    async def _runner():
        return await coro

    try:
        return anyio.from_thread.run(_runner)
    except RuntimeError:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            loop.create_task(_runner())
            return None
        return asyncio.run(_runner())


def ws_broadcast_type_safe(manager: WSManager, event_type: str, payload: dict) -> None:
    """Wrapper synchrone: broadcast typé à tous les écrans."""
    _run_async(manager.broadcast_type(event_type, payload))

"""
WebSocket endpoint.

- /ws : flux des écrans (notifications, toasts, état).
  - {"type":"identify","screen_id":"..."} -> {"type":"identified"}
  - {"type":"ping"} -> {"type":"pong"}
  - {"type":"state"} -> {"type":"state","payload": snapshot}
  - autre -> {"type":"ack"}
- À la connexion, l'état complet est envoyé une fois.
"""
from __future__ import annotations

from typing import Optional

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    game = ws.app.state.game_session
    manager = game.ws
    await manager.connect(ws)
    await manager.send_json(ws, {"type": "state", "payload": game.snapshot()})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = orjson.loads(raw)
            except orjson.JSONDecodeError:
                # Message non JSON -> ignoré
                continue
            if not isinstance(msg, dict):
                continue

            mtype = msg.get("type")
            if mtype == "identify":
                payload = msg.get("payload") or {}
                sid: Optional[str] = (msg.get("screen_id") or payload.get("screen_id") or "").strip()
                if sid:
                    manager.identify(ws, sid)
                    await manager.send_json(ws, {"type": "identified", "screen_id": sid})
                else:
                    await manager.send_json(ws, {"type": "error", "error": "missing screen_id"})
            elif mtype == "ping":
                await manager.send_json(ws, {"type": "pong"})
            elif mtype == "state":
                await manager.send_json(ws, {"type": "state", "payload": game.snapshot()})
            else:
                await manager.send_json(ws, {"type": "ack", "received": msg})
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(ws)

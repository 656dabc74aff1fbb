"""
Dépendances FastAPI liées à la partie
=====================================

- `get_game_session` : résout la `GameSession` stockée dans `app.state.game_session`
  par `create_app()` (une seule partie par appareil).
- `ensure_ok` : convertit un résultat moteur refusé en HTTP 409 `{"detail": error}`.
"""
from __future__ import annotations

from typing import TypeVar, Union

from fastapi import HTTPException, Request

from hideseek.models.card import CardActionResult
from hideseek.models.player import ActionResult
from hideseek.models.question import QuestionActionResult
from hideseek.services.game_session import GameSession

R = TypeVar("R", bound=Union[ActionResult, CardActionResult, QuestionActionResult])


def get_game_session(request: Request) -> GameSession:
    return request.app.state.game_session


def ensure_ok(result: R) -> R:
    if not result.success:
        raise HTTPException(status_code=409, detail=result.error or "Action refused")
    return result

"""
Module routes/timers.py
Rôle:
- Lecture des trois horloges (période de cachette, durée de cachette, réponse à la question).

Notes:
- Aucune horloge ne se pilote directement : les deux premières suivent la phase et la
  pause de la partie, la troisième suit la question en attente (/questions).
"""
from fastapi import APIRouter, Depends

from hideseek.deps.session import get_game_session
from hideseek.services.game_session import GameSession
from hideseek.utils.format_time import format_time_short

router = APIRouter(prefix="/timers", tags=["timers"])


def _view(status: dict) -> dict:
    shown = status["remaining_ms"] if status["remaining_ms"] is not None else status["elapsed_ms"]
    return {**status, "display": format_time_short(shown)}


@router.get("")
async def timers(game: GameSession = Depends(get_game_session)):
    return {
        "hiding_period": _view(game.hiding_period.status()),
        "hiding_duration": _view(game.hiding_duration.status()),
        "question_response": _view(game.question.status()),
    }

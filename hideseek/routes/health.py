"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK + phase courante + écrans connectés).
"""
from fastapi import APIRouter, Depends

from hideseek.config.settings import settings
from hideseek.deps.session import get_game_session
from hideseek.services.game_session import GameSession

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(game: GameSession = Depends(get_game_session)):
    """Renvoie un OK minimal avec le nom de service configuré."""
    return {
        "ok": True,
        "service": settings.APP_NAME,
        "phase": game.session.phase.value,
        "screens": game.ws.stats(),
    }

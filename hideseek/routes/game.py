"""
Module routes/game.py
Rôle:
- Pilotage de la partie : joueurs, taille, cycle de round, pause, retour au setup.
- Vue complète (`GET /game/state`) et classement formaté.

Conventions:
- Commande refusée par la machine à états -> 409 {"detail": error}.
- Joueur inconnu -> 404.
- Handlers `async` : ils tournent dans la boucle de l'app, ce qui permet aux timers
  de planifier leurs ticks.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from hideseek.deps.session import ensure_ok, get_game_session
from hideseek.models.player import GameSize
from hideseek.services.game_session import GameSession
from hideseek.utils.format_time import format_time

router = APIRouter(prefix="/game", tags=["game"])


class PlayerCreatePayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)


class StartRoundPayload(BaseModel):
    hider_id: str


class GameSizePayload(BaseModel):
    size: GameSize


class VisibilityPayload(BaseModel):
    foreground: bool


def _require_player(game: GameSession, player_id: str) -> None:
    if game.session.get_player(player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")


@router.get("/state")
async def game_state(game: GameSession = Depends(get_game_session)) -> Dict[str, Any]:
    return game.snapshot()


@router.get("/ranking")
async def ranking(game: GameSession = Depends(get_game_session)):
    """Classement par temps de cachette cumulé (ordre d'inscription à égalité)."""
    return [
        {
            "rank": i + 1,
            "player_id": p.id,
            "name": p.name,
            "total_hiding_time_ms": p.total_hiding_time_ms,
            "total_hiding_time": format_time(p.total_hiding_time_ms),
        }
        for i, p in enumerate(game.session.players_ranked_by_time)
    ]


@router.post("/players", status_code=201)
async def add_player(payload: PlayerCreatePayload, game: GameSession = Depends(get_game_session)):
    result = ensure_ok(game.session.add_player(payload.name))
    return game.session.get_player(result.player_id).model_dump()


@router.get("/players/{player_id}")
async def get_player(player_id: str, game: GameSession = Depends(get_game_session)):
    player = game.session.get_player(player_id)
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return player.model_dump()


@router.delete("/players/{player_id}")
async def remove_player(player_id: str, game: GameSession = Depends(get_game_session)):
    _require_player(game, player_id)
    ensure_ok(game.session.remove_player(player_id))
    return {"ok": True}


@router.put("/size")
async def set_game_size(payload: GameSizePayload, game: GameSession = Depends(get_game_session)):
    ensure_ok(game.session.set_game_size(payload.size))
    return {"ok": True, "game_size": payload.size.value}


@router.post("/rounds/start")
async def start_round(payload: StartRoundPayload, game: GameSession = Depends(get_game_session)):
    _require_player(game, payload.hider_id)
    ensure_ok(game.session.start_round(payload.hider_id))
    return {
        "ok": True,
        "round_number": game.session.round_number,
        "hiding_period_ms": game.session.hiding_period_ms(),
    }


@router.post("/seeking")
async def start_seeking(game: GameSession = Depends(get_game_session)):
    ensure_ok(game.session.start_seeking())
    return {"ok": True, "phase": game.session.phase.value}


@router.post("/hiding-zone")
async def enter_hiding_zone(game: GameSession = Depends(get_game_session)):
    ensure_ok(game.session.enter_hiding_zone())
    return {"ok": True, "phase": game.session.phase.value}


@router.post("/found")
async def hider_found(game: GameSession = Depends(get_game_session)):
    ensure_ok(game.session.hider_found())
    return {"ok": True, "phase": game.session.phase.value}


@router.post("/rounds/end")
async def end_round(game: GameSession = Depends(get_game_session)):
    ensure_ok(game.end_round())
    summary: Optional[Dict[str, Any]] = game.last_round.model_dump() if game.last_round else None
    return {"ok": True, "phase": game.session.phase.value, "round": summary}


@router.post("/pause")
async def pause(game: GameSession = Depends(get_game_session)):
    ensure_ok(game.session.pause_game())
    return {"ok": True, "is_paused": True}


@router.post("/resume")
async def resume(game: GameSession = Depends(get_game_session)):
    ensure_ok(game.session.resume_game())
    return {"ok": True, "is_paused": False}


@router.post("/reset")
async def reset(game: GameSession = Depends(get_game_session)):
    """Retour explicite au setup (joueurs effacés, paquet neuf)."""
    ensure_ok(game.reset_game())
    return {"ok": True}


@router.post("/visibility")
async def visibility(payload: VisibilityPayload, game: GameSession = Depends(get_game_session)):
    game.handle_visibility_change(payload.foreground)
    return {"ok": True}

"""
Module routes/cards.py
Rôle:
- Façade HTTP du paquet du cacheur : pioche, sélection, main, powerups,
  malédictions et pièges.

Réponses:
- Succès : le `CardActionResult` sérialisé.
- Refus moteur : 409 {"detail": error}; malédiction / piège / catégorie inconnus : 404.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from hideseek.deps.session import ensure_ok, get_game_session
from hideseek.models.card import CardType, PowerupType
from hideseek.services.catalog import CATALOG
from hideseek.services.game_session import GameSession

router = APIRouter(prefix="/cards", tags=["cards"])


class DrawPayload(BaseModel):
    count: int = Field(..., ge=1, le=10)


class SelectionPayload(BaseModel):
    category_id: Optional[str] = None
    draw: Optional[int] = Field(None, ge=1)
    keep: Optional[int] = Field(None, ge=1)


class KeepPayload(BaseModel):
    instance_ids: List[str] = Field(default_factory=list)


class AddCardPayload(BaseModel):
    card_type: CardType
    tier: Optional[int] = None
    powerup_type: Optional[PowerupType] = None
    curse_id: Optional[str] = None


class DuplicatePayload(BaseModel):
    target_instance_id: str


class DiscardDrawPayload(BaseModel):
    discard_instance_ids: List[str]


class TimeTrapPayload(BaseModel):
    station_name: str


class HandLimitPayload(BaseModel):
    by: int = 1


def _dump(result):
    return ensure_ok(result).model_dump(mode="json", exclude_none=True)


@router.get("")
async def deck_state(game: GameSession = Depends(get_game_session)):
    return game.snapshot()["deck"]


@router.post("/draw")
async def draw(payload: DrawPayload, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.draw_cards(payload.count))


@router.post("/selection")
async def draw_for_selection(payload: SelectionPayload, game: GameSession = Depends(get_game_session)):
    """Pioche « X, garder Y » : via une catégorie de question ou des valeurs explicites."""
    if payload.category_id is not None:
        if CATALOG.draw_keep(payload.category_id) is None:
            raise HTTPException(status_code=404, detail="Unknown question category")
        return _dump(game.deck.draw_for_question(payload.category_id))
    if payload.draw and payload.keep:
        return _dump(game.deck.draw_for_selection(payload.draw, payload.keep))
    raise HTTPException(status_code=422, detail="category_id or draw/keep required")


@router.post("/selection/keep")
async def keep(payload: KeepPayload, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.keep_cards(payload.instance_ids))


@router.post("/hand")
async def add_card(payload: AddCardPayload, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.add_card_to_hand(
        payload.card_type,
        tier=payload.tier,
        powerup_type=payload.powerup_type,
        curse_id=payload.curse_id,
    ))


@router.post("/hand/clear")
async def clear_hand(game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.clear_hand())


@router.post("/hand-limit")
async def expand_hand_limit(payload: HandLimitPayload, game: GameSession = Depends(get_game_session)):
    ensure_ok(game.deck.expand_hand_limit(payload.by))
    return {"ok": True, "hand_limit": game.deck.hand_limit}


@router.post("/{instance_id}/discard")
async def discard(instance_id: str, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.discard_card(instance_id))


@router.post("/{instance_id}/play")
async def play(instance_id: str, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_card(instance_id))


@router.post("/{instance_id}/veto")
async def veto(instance_id: str, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_veto_powerup(instance_id))


@router.post("/{instance_id}/randomize")
async def randomize(instance_id: str, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_randomize_powerup(instance_id))


@router.post("/{instance_id}/draw-expand")
async def draw_expand(instance_id: str, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_draw_expand_powerup(instance_id))


@router.post("/{instance_id}/duplicate")
async def duplicate(instance_id: str, payload: DuplicatePayload, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_duplicate_powerup(instance_id, payload.target_instance_id))


@router.post("/{instance_id}/discard-draw")
async def discard_draw(instance_id: str, payload: DiscardDrawPayload, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_discard_draw_powerup(instance_id, payload.discard_instance_ids))


@router.post("/{instance_id}/move")
async def move(instance_id: str, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_move_powerup(instance_id))


@router.post("/{instance_id}/curse")
async def play_curse(instance_id: str, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_curse_card(instance_id))


@router.post("/{instance_id}/time-trap")
async def play_time_trap(instance_id: str, payload: TimeTrapPayload, game: GameSession = Depends(get_game_session)):
    return _dump(game.deck.play_time_trap_card(instance_id, payload.station_name))


@router.delete("/curses/{instance_id}")
async def clear_curse(instance_id: str, game: GameSession = Depends(get_game_session)):
    if not any(c.instance_id == instance_id for c in game.deck.active_curses):
        raise HTTPException(status_code=404, detail="Curse not found")
    return _dump(game.deck.clear_curse(instance_id))


@router.post("/traps/{instance_id}/trigger")
async def trigger_trap(instance_id: str, game: GameSession = Depends(get_game_session)):
    if not any(t.instance_id == instance_id for t in game.deck.active_time_traps):
        raise HTTPException(status_code=404, detail="Time trap not found")
    return _dump(game.deck.trigger_time_trap(instance_id))

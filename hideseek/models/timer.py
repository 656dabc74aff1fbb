"""
Models / timer.py
Rôle:
- Forme persistée d'un timer (une entrée par clé de timer).

Champs:
- elapsed: temps écoulé (ms) au moment de la sauvegarde.
- is_running / is_paused: état du timer au moment de la sauvegarde.
- start_time: horloge murale (ms epoch) de la sauvegarde; sert UNIQUEMENT à
  calculer la dérive au rechargement, jamais de source de vérité une fois le
  timer relancé en mémoire.
- phase: phase de session pour laquelle l'enregistrement est valide.
- context: données propres au consommateur (ex: question_id, durée totale).
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class PersistedTimerState(BaseModel):
    elapsed: int = Field(0, ge=0)
    is_running: bool = False
    is_paused: bool = False
    start_time: Optional[int] = None
    phase: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)

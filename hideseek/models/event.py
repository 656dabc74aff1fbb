"""
Models / event.py
Rôle:
- Définir les événements internes (bus) et les toasts diffusés aux écrans.

Notes:
- `severity` restreint à un jeu de valeurs (Literal) pour éviter les fautes de frappe.
- `payload` est libre (clé/valeur) afin d'embarquer le contexte spécifique.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Literal

from pydantic import BaseModel, Field

Severity = Literal["info", "success", "warning", "error"]

# Noms d'événements publiés sur le bus
PHASE_CHANGED = "phase_changed"
PAUSE_CHANGED = "pause_changed"
CURSE_CLEARED = "curse_cleared"
TRAP_TRIGGERED = "trap_triggered"
QUESTION_ASKED = "question_asked"
QUESTION_ANSWERED = "question_answered"
QUESTION_VETOED = "question_vetoed"
QUESTION_RANDOMIZED = "question_randomized"


class Event(BaseModel):
    """Événement interne publié sur le bus (ex: phase_changed {old, new})."""
    name: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class Toast(BaseModel):
    """Message court destiné aux écrans connectés."""
    message: str
    severity: Severity = "info"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

"""
Utils: format_time.py
Rôle:
- Affichage des durées (ms) pour les horloges et le classement.

- format_time(ms)       -> "HH:MM:SS"
- format_time_short(ms) -> "MM:SS" sous une heure, sinon "HH:MM:SS"
Les valeurs négatives sont traitées comme 0.
"""
from typing import Tuple


def _split(ms: int) -> Tuple[int, int, int]:
    total_seconds = max(0, int(ms)) // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return hours, minutes, seconds


def format_time(ms: int) -> str:
    return ":".join(f"{n:02d}" for n in _split(ms))


def format_time_short(ms: int) -> str:
    hours, minutes, seconds = _split(ms)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"

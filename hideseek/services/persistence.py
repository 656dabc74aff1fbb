"""
Service: persistence.py
Rôle :
- Couche de stockage clé/valeur interchangeable (contrat `PersistenceGateway`).
- Deux implémentations : mémoire (tests, démo) et fichiers JSON (un fichier par clé).

Contrat :
- save(key, value) : value doit être sérialisable en JSON (dict/list/str/nombres/bool/None).
- load(key)        : valeur désérialisée, ou None si absente OU illisible (JSON corrompu).
- remove(key)      : supprime la clé (silencieux si absente).
- clear()          : supprime toutes les clés de l'espace de noms.

Clés utilisées par le cœur :
- `game` (session), `cards` (paquet), `timer:<nom>` (un enregistrement par timer).

Stockage fichier :
- `<DATA_DIR>/<prefix><key>.json`, les `:` des clés sont remplacés par `__`.
"""
from __future__ import annotations

import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Optional, Protocol

import orjson

from hideseek.config.settings import settings
from .io_utils import dumps, loads, read_json, write_json

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    def save(self, key: str, value: Any) -> None: ...

    def load(self, key: str) -> Any: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStorage:
    """
    Stockage en mémoire.
    Les valeurs sont conservées sérialisées (bytes) : un `load` rend une copie
    indépendante, exactement comme un aller-retour disque.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._data: Dict[str, bytes] = {}

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = dumps(value)

    def load(self, key: str) -> Any:
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("Corrupt value in memory storage", extra={"storage_key": key})
            return None

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def put_raw(self, key: str, raw: bytes | str) -> None:
        """Injecte une valeur brute (sert à simuler un stockage corrompu)."""
        with self._lock:
            self._data[key] = raw.encode("utf-8") if isinstance(raw, str) else raw

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())


class JsonFileStorage:
    """Stockage persistant : un fichier JSON par clé sous `base_dir`."""

    def __init__(self, base_dir: Optional[Path] = None, prefix: Optional[str] = None) -> None:
        self.base_dir = Path(base_dir or settings.DATA_DIR)
        self.prefix = settings.STORAGE_PREFIX if prefix is None else prefix
        self._lock = RLock()

    def _path(self, key: str) -> Path:
        safe = f"{self.prefix}{key}".replace(":", "__").replace("/", "_")
        return self.base_dir / f"{safe}.json"

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            write_json(self._path(key), value)

    def load(self, key: str) -> Any:
        with self._lock:
            try:
                return read_json(self._path(key))
            except orjson.JSONDecodeError:
                logger.warning("Corrupt JSON file ignored", extra={"storage_key": key})
                return None

    def remove(self, key: str) -> None:
        with self._lock:
            path = self._path(key)
            if path.exists():
                path.unlink()

    def clear(self) -> None:
        with self._lock:
            if not self.base_dir.exists():
                return
            safe_prefix = self.prefix.replace(":", "__").replace("/", "_")
            for path in self.base_dir.glob(f"{safe_prefix}*.json"):
                path.unlink()

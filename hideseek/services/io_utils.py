"""
Utilitaires IO JSON (rapides) basés sur orjson.
- read_json(Path)  → Any | None (None si fichier manquant)
- write_json(Path, data) → écrit en binaire (création des dossiers si besoin)
- dumps/loads → sérialisation en mémoire (même encodage que sur disque)

Attention:
- orjson renvoie/attend des bytes; on lit/écrit en mode binaire.
- orjson sérialise nativement les datetime en ISO-8601 (UTC conservé).
- OPT_NON_STR_KEYS : les clés entières (paliers de bonus) deviennent des chaînes.
- write_json passe par un fichier temporaire + replace pour qu'un process tué
  en cours d'écriture ne laisse jamais un JSON tronqué.
"""
import orjson as json
from pathlib import Path
from typing import Any


def dumps(data: Any) -> bytes:
    return json.dumps(data, option=json.OPT_NON_STR_KEYS)


def loads(raw: bytes | str) -> Any:
    return json.loads(raw)


def read_json(path: Path) -> Any:
    """Lit un fichier JSON (ou None s'il n'existe pas)."""
    if not path.exists():
        return None
    with path.open("rb") as f:
        return json.loads(f.read())


def write_json(path: Path, data: Any) -> None:
    """Écrit un fichier JSON de manière sûre (dossier parent créé si absent)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("wb") as f:
        f.write(dumps(data))
    tmp.replace(path)

"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres du tracker (nom, host/port, stockage, timers…).
- Les valeurs par défaut conviennent pour un usage local sur un seul appareil.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from hideseek.config.settings import settings`.

Bonnes pratiques
----------------
- `DATA_DIR` calcule un chemin relatif au repo : `<repo>/hideseek/data`.
- `TIMER_TICK_MS` ne sert qu'à l'affichage : le temps écoulé est toujours
  recalculé depuis l'horloge murale.

Exemples de `.env`
------------------
APP_NAME="Hide and Seek Tracker (dev)"
PORT=8080
DEFAULT_GAME_SIZE="medium"
DATA_DIR="/var/opt/hideseek/data"
LOG_LEVEL="DEBUG"
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Hide and Seek Tracker"
    # Bind réseau du shell local (FastAPI / Uvicorn)
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # Répertoire des fichiers persistés (un JSON par clé)
    # Par défaut: <repo>/hideseek/data
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
    # Préfixe des clés pour éviter les collisions avec d'autres apps
    STORAGE_PREFIX: str = "jet-lag-stillwater:"

    # Règles de partie
    DEFAULT_GAME_SIZE: str = "small"
    DEFAULT_HAND_LIMIT: int = 6

    # Timers (millisecondes)
    TIMER_TICK_MS: int = 100
    HIDING_WARNING_MS: int = 5 * 60 * 1000
    RESPONSE_LOW_TIME_MS: int = 60 * 1000
    # Période de scrutation des malédictions à durée (secondes)
    CURSE_POLL_SECONDS: float = 1.0

    LOG_LEVEL: str = "INFO"

    # Front(s) autorisés (CORS)
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()

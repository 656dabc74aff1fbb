"""
Application FastAPI : point d'entrée
====================================

Rôle
----
- `create_app(session=None)` instancie l'app, configure le CORS et les logs,
  monte les routeurs (REST + WebSocket) et attache la `GameSession` à `app.state`.
- Au démarrage : réhydratation de la partie (session, paquet, timers) puis
  lancement de la scrutation des malédictions.
- À l'arrêt : sauvegarde immédiate des timers.

Notes
-----
- Le middleware CORS est ajouté AVANT les include_router.
- `app` (module) sert à `uvicorn hideseek.main:app`; les tests construisent leur
  propre app avec une session en mémoire.
"""
import logging
import sys
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hideseek.config.settings import settings
from hideseek.routes.cards import router as cards_router
from hideseek.routes.game import router as game_router
from hideseek.routes.health import router as health_router
from hideseek.routes.questions import router as questions_router
from hideseek.routes.timers import router as timers_router
from hideseek.routes.websocket import router as ws_router
from hideseek.services.game_session import GameSession

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Un seul handler stdout sur le logger racine (idempotent)."""
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if any(getattr(h, "_hideseek", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._hideseek = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def create_app(session: Optional[GameSession] = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.state.game_session = session if session is not None else GameSession()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(game_router)
    app.include_router(cards_router)
    app.include_router(questions_router)
    app.include_router(timers_router)
    app.include_router(health_router)
    app.include_router(ws_router)

    @app.get("/")
    async def root():
        """Ping basique."""
        return {"ok": True, "service": settings.APP_NAME}

    @app.on_event("startup")
    async def mount_session():
        app.state.game_session.mount()
        logger.info("Registered routes: %s", ", ".join(sorted(getattr(r, "path", "?") for r in app.routes)))

    @app.on_event("shutdown")
    async def persist_session():
        app.state.game_session.shutdown()

    return app


app = create_app()

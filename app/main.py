"""
➡️ But : Point d'entrée HTTP du moteur de grilles.

uvicorn app.main:app --reload

- routers v1 : auth, games, squares (+ flux SSE), players, cron, internal ;
- au démarrage : création des tables, puis boucle d'expiration in-process si
  SWEEPER_INTERVAL_SECONDS > 0 (sinon un cron externe appelle /api/v1/cron/*).
"""

import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from app.core.config import settings
from app.core.logging import configure_logging
from app.core.openapi import TAGS_METADATA, custom_openapi
from app.db.session import engine, init_db
from app.features.sweeper.runner import sweeper_loop

from app.api.v1.routers import authentication, games, squares, players, cron

import uvicorn

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    openapi_tags=TAGS_METADATA,
)

# CORS (ajustez selon vos besoins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)

# Routers
app.include_router(authentication.router, prefix="/api/v1")
app.include_router(games.router, prefix="/api/v1")
app.include_router(squares.router, prefix="/api/v1")
app.include_router(players.router, prefix="/api/v1")
app.include_router(cron.router, prefix="/api/v1")
app.include_router(cron.internal_router, prefix="/api/v1")

# Génération du schéma OpenAPI custom (facultatif, mais propre)
app.openapi = lambda: custom_openapi(app)

# Démarrage
@app.on_event("startup")
async def on_startup():
    init_db()
    if settings.SWEEPER_INTERVAL_SECONDS > 0:
        app.state.sweeper_task = asyncio.create_task(
            sweeper_loop(lambda: Session(engine), settings.SWEEPER_INTERVAL_SECONDS)
        )

@app.on_event("shutdown")
async def on_shutdown():
    task = getattr(app.state, "sweeper_task", None)
    if task:
        task.cancel()
        logger.info("In-process sweeper stopped")

if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8080, reload=(settings.ENV == "dev")) # http://localhost:8080

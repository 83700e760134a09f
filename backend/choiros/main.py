"""
Point d'entrée principal de l'API ChoirOS (check-in des présences).
Démarrage : uvicorn choiros.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import choiros.models  # noqa: F401 ; enregistre tous les modèles dans Base.metadata avant les routers
from choiros.database import Base, engine
from choiros.routers import attendance, events

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie de l'application : crée les tables manquantes au démarrage."""
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="ChoirOS API",
    description="API de check-in des présences pour chorales (offline-first)",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : autorise les sous-domaines tenants et localhost en développement.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://((localhost|127\.0\.0\.1)(:\d+)?|[a-z0-9-]+\.choiros\.app)",
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-User-Id", "X-Organization-Slug"],
)


app.include_router(attendance.router)
app.include_router(events.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    Le client offline classe cette réponse comme erreur transitoire et réessaie plus tard.
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle (sondé par le moniteur de connectivité du client)."""
    return {"status": "ok", "service": "ChoirOS API", "version": "0.1.0"}

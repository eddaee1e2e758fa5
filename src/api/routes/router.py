"""Agregador de rotas — registra todos os routers da API de operação.

Uso:
    from api.routes import create_api_router

    app = FastAPI()
    app.include_router(create_api_router())
"""

from __future__ import annotations

from fastapi import APIRouter

from api.routes.health.router import router as health_router
from api.routes.outbox.router import router as outbox_router
from api.routes.sources.router import router as sources_router


def create_api_router() -> APIRouter:
    """Cria router principal com todos os sub-routers registrados."""
    api_router = APIRouter()

    # Health checks (sem prefixo para /health e /ready na raiz)
    api_router.include_router(health_router, tags=["health"])

    api_router.include_router(outbox_router, prefix="/outbox", tags=["outbox"])
    api_router.include_router(sources_router, prefix="/sources", tags=["sources"])

    return api_router

"""Rotas HTTP da API de operação.

Estrutura:
- routes/health/: health checks e readiness
- routes/outbox/: consulta e re-enfileiramento de envelopes
- routes/sources/: origens pollados e fila de vencidos

Agregação:
- router.py: registra todos os routers no app principal
"""

from __future__ import annotations

from api.routes.router import create_api_router

__all__ = ["create_api_router"]

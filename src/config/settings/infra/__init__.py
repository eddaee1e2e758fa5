"""Agregador de settings de infraestrutura.

Re-exporta settings de Firestore e rate limit para uso externo.
"""

from __future__ import annotations

from config.settings.infra.firestore import (
    FirestoreSettings,
    get_firestore_settings,
)
from config.settings.infra.rate_limit import (
    RateLimitBackend,
    RateLimitSettings,
    get_rate_limit_settings,
)

__all__ = [
    # Firestore
    "FirestoreSettings",
    # Rate limit
    "RateLimitBackend",
    "RateLimitSettings",
    "get_firestore_settings",
    "get_rate_limit_settings",
]

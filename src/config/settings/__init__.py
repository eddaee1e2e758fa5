"""Agregador de settings do loops-sync.

Re-exporta todas as settings e funções de cada módulo.
Organização por domínio para isolamento de mudanças.
"""

from __future__ import annotations

# Base settings
from config.settings.base import (
    BaseSettings,
    Environment,
    StoreBackend,
    StoreSettings,
    get_base_settings,
    get_store_settings,
)

# Infrastructure settings
from config.settings.infra import (
    FirestoreSettings,
    RateLimitBackend,
    RateLimitSettings,
    get_firestore_settings,
    get_rate_limit_settings,
)

# Pipeline settings
from config.settings.sync import (
    MAX_INTERVAL_SECONDS,
    ChangeDetectionSettings,
    IgnoreSettings,
    OutboxSettings,
    PollingSettings,
    VerifierSettings,
    get_change_detection_settings,
    get_ignore_settings,
    get_outbox_settings,
    get_polling_settings,
    get_verifier_settings,
)

__all__ = [
    # Constants
    "MAX_INTERVAL_SECONDS",
    # Base
    "BaseSettings",
    # Pipeline
    "ChangeDetectionSettings",
    "Environment",
    # Infrastructure
    "FirestoreSettings",
    "IgnoreSettings",
    "OutboxSettings",
    "PollingSettings",
    "RateLimitBackend",
    "RateLimitSettings",
    "StoreBackend",
    "StoreSettings",
    "VerifierSettings",
    "get_base_settings",
    "get_change_detection_settings",
    "get_firestore_settings",
    "get_ignore_settings",
    "get_outbox_settings",
    "get_polling_settings",
    "get_rate_limit_settings",
    "get_store_settings",
    "get_verifier_settings",
]

"""Agregador de settings do pipeline de sincronização.

Re-exporta settings de poll, detecção de mudança, outbox,
ignore e verificação de consistência.
"""

from __future__ import annotations

from config.settings.sync.change_detection import (
    ChangeDetectionSettings,
    get_change_detection_settings,
)
from config.settings.sync.ignore import IgnoreSettings, get_ignore_settings
from config.settings.sync.outbox import OutboxSettings, get_outbox_settings
from config.settings.sync.polling import (
    MAX_INTERVAL_SECONDS,
    PollingSettings,
    get_polling_settings,
)
from config.settings.sync.verifier import VerifierSettings, get_verifier_settings

__all__ = [
    "MAX_INTERVAL_SECONDS",
    "ChangeDetectionSettings",
    "IgnoreSettings",
    "OutboxSettings",
    "PollingSettings",
    "VerifierSettings",
    "get_change_detection_settings",
    "get_ignore_settings",
    "get_outbox_settings",
    "get_polling_settings",
    "get_verifier_settings",
]

"""Settings de detecção de mudança (baselines)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class ChangeDetectionSettings:
    """Configurações do ChangeDetector.

    Attributes:
        baseline_retention_days: Baselines não checados há mais que isso são podados
        prune_batch_size: Tamanho do lote de deleção
        track_checks: Persiste last_checked_at/checked_count mesmo sem mudança
    """

    baseline_retention_days: int = 30
    prune_batch_size: int = 1000
    track_checks: bool = True

    def validate(self) -> list[str]:
        """Valida configurações de detecção de mudança."""
        errors: list[str] = []

        if self.baseline_retention_days < 1:
            errors.append("BASELINE_RETENTION_DAYS deve ser >= 1")

        if self.prune_batch_size < 1:
            errors.append("BASELINE_PRUNE_BATCH_SIZE deve ser >= 1")

        return errors


def _load_change_detection_from_env() -> ChangeDetectionSettings:
    """Carrega ChangeDetectionSettings de variáveis de ambiente."""
    return ChangeDetectionSettings(
        baseline_retention_days=int(os.getenv("BASELINE_RETENTION_DAYS", "30")),
        prune_batch_size=int(os.getenv("BASELINE_PRUNE_BATCH_SIZE", "1000")),
        track_checks=os.getenv("BASELINE_TRACK_CHECKS", "true").lower() in ("true", "1"),
    )


@lru_cache(maxsize=1)
def get_change_detection_settings() -> ChangeDetectionSettings:
    """Retorna instância cacheada de ChangeDetectionSettings."""
    return _load_change_detection_from_env()

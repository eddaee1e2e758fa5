"""Settings do agendamento de poll.

Cadência padrão dos sources e limites de backoff.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

MAX_INTERVAL_SECONDS = 86_400


@dataclass(frozen=True)
class PollingSettings:
    """Configurações de poll.

    Attributes:
        default_interval_seconds: Intervalo base de novos sources
        default_jitter: Fração de jitter de novos sources (0..1)
        max_backoff_seconds: Teto do backoff exponencial em falhas
        enqueue_batch_size: Sources reservados por lote do enqueuer
    """

    default_interval_seconds: int = 30
    default_jitter: float = 0.10
    max_backoff_seconds: int = 1800  # 30 min
    enqueue_batch_size: int = 200

    def validate(self) -> list[str]:
        """Valida configurações de poll.

        Returns:
            Lista de erros de validação.
        """
        errors: list[str] = []

        if not 1 <= self.default_interval_seconds <= MAX_INTERVAL_SECONDS:
            errors.append(f"POLL_INTERVAL_SECONDS deve estar em [1, {MAX_INTERVAL_SECONDS}]")

        if not 0.0 <= self.default_jitter <= 1.0:
            errors.append("POLL_JITTER deve estar entre 0.0 e 1.0")

        if self.max_backoff_seconds < 1:
            errors.append("POLL_MAX_BACKOFF_SECONDS deve ser >= 1")

        if self.enqueue_batch_size < 1:
            errors.append("POLL_ENQUEUE_BATCH_SIZE deve ser >= 1")

        return errors


def _load_polling_from_env() -> PollingSettings:
    """Carrega PollingSettings de variáveis de ambiente."""
    return PollingSettings(
        default_interval_seconds=int(os.getenv("POLL_INTERVAL_SECONDS", "30")),
        default_jitter=float(os.getenv("POLL_JITTER", "0.10")),
        max_backoff_seconds=int(os.getenv("POLL_MAX_BACKOFF_SECONDS", "1800")),
        enqueue_batch_size=int(os.getenv("POLL_ENQUEUE_BATCH_SIZE", "200")),
    )


@lru_cache(maxsize=1)
def get_polling_settings() -> PollingSettings:
    """Retorna instância cacheada de PollingSettings."""
    return _load_polling_from_env()

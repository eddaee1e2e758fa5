"""Settings do rate limiter distribuído.

Define buckets de saída: um global para a API de destino e
um por base para a API de origem.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from config.settings.base.core import BaseSettings

RateLimitBackend = Literal["memory", "redis"]


@dataclass(frozen=True)
class RateLimitSettings:
    """Configurações de rate limit.

    Attributes:
        backend: Backend do estado das janelas (memory|redis)
        destination_bucket: Bucket global da API de destino
        destination_limit: Eventos por janela no destino
        destination_period: Janela do destino em segundos
        source_bucket_prefix: Prefixo dos buckets por base de origem
        source_limit: Eventos por janela por base
        source_period: Janela da origem em segundos
    """

    backend: RateLimitBackend = "memory"
    destination_bucket: str = "rate:loops:global"
    destination_limit: int = 10
    destination_period: float = 1.0
    source_bucket_prefix: str = "rate:airtable:"
    source_limit: int = 5
    source_period: float = 1.0

    def source_bucket(self, source_id: str) -> str:
        """Nome do bucket da base de origem."""
        return f"{self.source_bucket_prefix}{source_id}"

    def validate(self, base: BaseSettings) -> list[str]:
        """Valida configurações de rate limit.

        Args:
            base: BaseSettings para verificar ambiente e REDIS_URL.

        Returns:
            Lista de erros de validação.
        """
        errors: list[str] = []

        if self.backend not in ("memory", "redis"):
            errors.append(f"RATE_LIMIT_BACKEND inválido: {self.backend}")

        if self.backend == "redis" and not base.redis_url:
            errors.append("RATE_LIMIT_BACKEND=redis requer REDIS_URL configurado")

        if self.backend == "memory" and not base.is_development:
            errors.append(
                "RATE_LIMIT_BACKEND=memory proibido em staging/production: "
                "o limite não seria respeitado entre processos"
            )

        if self.destination_limit < 1 or self.source_limit < 1:
            errors.append("RATE_LIMIT_*_LIMIT deve ser >= 1")

        if self.destination_period <= 0 or self.source_period <= 0:
            errors.append("RATE_LIMIT_*_PERIOD deve ser > 0")

        return errors


def _load_rate_limit_from_env() -> RateLimitSettings:
    """Carrega RateLimitSettings de variáveis de ambiente."""
    backend_str = os.getenv("RATE_LIMIT_BACKEND", "memory").lower()
    backend: RateLimitBackend = backend_str if backend_str in ("memory", "redis") else "memory"
    return RateLimitSettings(
        backend=backend,
        destination_bucket=os.getenv("RATE_LIMIT_DESTINATION_BUCKET", "rate:loops:global"),
        destination_limit=int(os.getenv("RATE_LIMIT_DESTINATION_LIMIT", "10")),
        destination_period=float(os.getenv("RATE_LIMIT_DESTINATION_PERIOD", "1.0")),
        source_bucket_prefix=os.getenv("RATE_LIMIT_SOURCE_PREFIX", "rate:airtable:"),
        source_limit=int(os.getenv("RATE_LIMIT_SOURCE_LIMIT", "5")),
        source_period=float(os.getenv("RATE_LIMIT_SOURCE_PERIOD", "1.0")),
    )


@lru_cache(maxsize=1)
def get_rate_limit_settings() -> RateLimitSettings:
    """Retorna instância cacheada de RateLimitSettings."""
    return _load_rate_limit_from_env()

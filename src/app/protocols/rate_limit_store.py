"""Protocolo do store de janelas deslizantes do rate limiter."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AcquireResult:
    """Resultado de uma tentativa de aquisição.

    oldest_ms: score (ms) da reserva mais antiga ainda na janela,
    presente apenas quando a tentativa foi recusada.
    """

    acquired: bool
    oldest_ms: float | None = None


class RateLimitStoreProtocol(ABC):
    """Contrato assíncrono do passo atômico do rate limiter.

    try_acquire deve executar como uma única operação atômica:
    descartar reservas com score <= now_ms - period_ms, contar, e
    registrar uma nova reserva apenas se a contagem for < limit.
    """

    @abstractmethod
    async def try_acquire(
        self,
        bucket: str,
        now_ms: int,
        limit: int,
        period_ms: int,
    ) -> AcquireResult:
        """Tenta reservar uma vaga na janela do bucket."""

    async def close(self) -> None:
        """Libera recursos (conexões). Padrão: nada a fazer."""
        return None

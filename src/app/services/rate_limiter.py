"""Rate limiter de janela deslizante estrita, distribuído.

Garantia: em nenhuma janela de `period` segundos há mais de `limit`
aquisições bem-sucedidas para o mesmo bucket, somando todos os
processos que compartilham o store.

O passo "descartar antigos + contar + registrar" é atômico no store
(Redis: script Lua). Aqui fica apenas o laço de espera: dormir até a
reserva mais antiga sair da janela, com jitter pequeno contra
thundering herd.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from app.observability.metrics import record_rate_limit_wait
from utils.errors import RateLimitExhaustedError

if TYPE_CHECKING:
    from app.protocols.rate_limit_store import RateLimitStoreProtocol

logger = logging.getLogger(__name__)

MIN_WAIT_MS = 5
JITTER_SECONDS = 0.01


class RateLimiter:
    """Limitador para um par (limit, period), aplicável a qualquer bucket.

    Args:
        store: Store atômico da janela deslizante
        limit: Máximo de aquisições por janela (>= 1)
        period: Tamanho da janela em segundos (> 0)
        clock: Relógio em segundos (epoch)
        sleep: Função de espera assíncrona
        jitter: Gerador em [0, 1) para o jitter da espera
        max_attempts: Tentativas antes de RateLimitExhaustedError (None = sem limite)
    """

    def __init__(
        self,
        store: RateLimitStoreProtocol,
        *,
        limit: int,
        period: float,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
        max_attempts: int | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError("limit deve ser >= 1")
        if period <= 0:
            raise ValueError("period deve ser > 0")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts deve ser >= 1")
        self._store = store
        self._limit = limit
        self._period = float(period)
        self._period_ms = int(self._period * 1000)
        self._clock = clock
        self._sleep = sleep
        self._jitter = jitter
        self._max_attempts = max_attempts

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def period(self) -> float:
        return self._period

    async def acquire(self, bucket: str) -> float:
        """Bloqueia até haver vaga no bucket e registra uma aquisição.

        Returns:
            Instante (segundos epoch) registrado para a aquisição.

        Raises:
            RateLimitExhaustedError: Se max_attempts for excedido.
            RedisConnectionError: Se o store falhar (fail closed).
        """
        attempt = 0
        while True:
            attempt += 1
            now_ms = int(self._clock() * 1000)
            result = await self._store.try_acquire(bucket, now_ms, self._limit, self._period_ms)
            if result.acquired:
                return now_ms / 1000

            if self._max_attempts is not None and attempt >= self._max_attempts:
                logger.warning(
                    "rate_limit_exhausted",
                    extra={"bucket": bucket, "attempts": attempt},
                )
                raise RateLimitExhaustedError(bucket, attempt)

            wait = self.wait_seconds(now_ms, result.oldest_ms)
            record_rate_limit_wait(bucket, wait, attempt)
            await self._sleep(wait)

    def wait_seconds(self, now_ms: int, oldest_ms: float | None) -> float:
        """Espera até a reserva mais antiga sair da janela.

        clamp(oldest + period - now, 5ms, period) + jitter * 10ms
        """
        oldest = now_ms if oldest_ms is None else int(oldest_ms)
        wait_ms = oldest + self._period_ms - now_ms
        wait_ms = min(max(wait_ms, MIN_WAIT_MS), self._period_ms)
        return wait_ms / 1000 + self._jitter() * JITTER_SECONDS


class RateLimiterRegistry:
    """Registro de limitadores por bucket, construído explicitamente no bootstrap.

    Todos os limitadores compartilham o mesmo store; o ciclo de vida
    (startup/shutdown) fecha as conexões do store.
    """

    def __init__(
        self,
        store: RateLimitStoreProtocol,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
        max_attempts: int | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._sleep = sleep
        self._jitter = jitter
        self._max_attempts = max_attempts
        self._limiters: dict[str, RateLimiter] = {}
        self._started = False

    @property
    def buckets(self) -> list[str]:
        return sorted(self._limiters)

    @property
    def started(self) -> bool:
        return self._started

    def register(self, bucket: str, limit: int, period: float) -> RateLimiter:
        """Registra o bucket. Re-registro com a mesma configuração é idempotente.

        Raises:
            ValueError: Se o bucket já existe com outra configuração.
        """
        existing = self._limiters.get(bucket)
        if existing is not None:
            if (existing.limit, existing.period) != (limit, float(period)):
                raise ValueError(f"Bucket já registrado com outra configuração: {bucket}")
            return existing
        limiter = RateLimiter(
            self._store,
            limit=limit,
            period=period,
            clock=self._clock,
            sleep=self._sleep,
            jitter=self._jitter,
            max_attempts=self._max_attempts,
        )
        self._limiters[bucket] = limiter
        logger.debug(
            "rate_limiter_registered",
            extra={"bucket": bucket, "limit": limit, "period": period},
        )
        return limiter

    def get(self, bucket: str) -> RateLimiter:
        """Raises: KeyError se o bucket não foi registrado."""
        try:
            return self._limiters[bucket]
        except KeyError:
            raise KeyError(f"Bucket de rate limit não registrado: {bucket}") from None

    async def acquire(self, bucket: str) -> float:
        return await self.get(bucket).acquire(bucket)

    async def startup(self) -> None:
        self._started = True
        logger.info("rate_limiter_registry_started", extra={"buckets": self.buckets})

    async def shutdown(self) -> None:
        if not self._started:
            return
        self._started = False
        await self._store.close()
        logger.info("rate_limiter_registry_stopped")

"""Redis Rate Limit Store: janela deslizante estrita com ZSET.

Garante que nenhuma janela de `period` contenha mais de `limit`
reservas, mesmo com vários processos compartilhando o bucket.

Um único script Lua executa o passo inteiro (descartar antigos,
contar, registrar) de forma atômica no servidor.

Contrato de Keys:
    O bucket é um nome lógico (ex.: "rate:loops:global"). Nunca usar
    PII em nomes de bucket.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.protocols.rate_limit_store import AcquireResult, RateLimitStoreProtocol
from utils.errors import RedisConnectionError

if TYPE_CHECKING:
    from redis.asyncio import Redis as AsyncRedis

logger = logging.getLogger(__name__)

# Folga do TTL além da janela para não perder reservas ainda válidas
EXPIRY_BUFFER_MS = 2000

SLIDING_WINDOW_SCRIPT = """
local key     = KEYS[1]
local seq_key = KEYS[2]
local now     = tonumber(ARGV[1])
local winFrom = tonumber(ARGV[2])
local limit   = tonumber(ARGV[3])
local ttl     = tonumber(ARGV[4])

redis.call("ZREMRANGEBYSCORE", key, 0, winFrom)
local count = redis.call("ZCARD", key)

if count < limit then
  local seq = redis.call("INCR", seq_key)
  redis.call("ZADD", key, now, tostring(now) .. "-" .. seq)
  redis.call("PEXPIRE", key, ttl)
  redis.call("PEXPIRE", seq_key, ttl)
  return {1, 0}
end

local oldest = redis.call("ZRANGE", key, 0, 0, "WITHSCORES")
return {0, oldest[2] or "0"}
"""


class RedisRateLimitStore(RateLimitStoreProtocol):
    """Store do rate limiter usando Redis (redis.asyncio).

    Estrutura:
        {bucket}      ZSET score=now_ms member="{now_ms}-{seq}"
        {bucket}:seq  contador para membros únicos no mesmo ms

    Args:
        async_redis_client: Cliente Redis assíncrono
    """

    def __init__(self, async_redis_client: AsyncRedis) -> None:
        self._redis = async_redis_client
        self._script = async_redis_client.register_script(SLIDING_WINDOW_SCRIPT)

    async def try_acquire(
        self,
        bucket: str,
        now_ms: int,
        limit: int,
        period_ms: int,
    ) -> AcquireResult:
        try:
            acquired, oldest = await self._script(
                keys=[bucket, f"{bucket}:seq"],
                args=[now_ms, now_ms - period_ms, limit, period_ms + EXPIRY_BUFFER_MS],
            )
        except Exception as exc:
            logger.error(
                "rate_limit_store_error",
                extra={"bucket": bucket, "error_type": type(exc).__name__},
            )
            raise RedisConnectionError("Falha ao executar rate limit no Redis") from exc

        if int(acquired) == 1:
            return AcquireResult(acquired=True)
        return AcquireResult(acquired=False, oldest_ms=float(oldest))

    async def close(self) -> None:
        await self._redis.aclose()

"""ConsistencyVerifier: oráculo de unanimidade para geradores não determinísticos.

Executa o gerador N vezes em paralelo e só aceita o resultado se as N
formas canônicas forem idênticas. Nunca faz voto de maioria: um
resultado não verificável é pior do que nenhum.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from app.domain.canonical import canonical_json
from utils.errors import ConsistencyError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RUNS = 3
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY_SECONDS = 1.0


class ConsistencyVerifier:
    """Verificação por unanimidade com rodadas de retry.

    Args:
        runs: Execuções paralelas por rodada (>= 2)
        max_retries: Rodadas adicionais após a primeira
        retry_delay: Espera fixa (segundos) entre rodadas
        sleep: Função de espera assíncrona
    """

    def __init__(
        self,
        runs: int = DEFAULT_RUNS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if runs < 2:
            raise ValueError("runs deve ser >= 2")
        if max_retries < 0:
            raise ValueError("max_retries deve ser >= 0")
        self._runs = runs
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep

    async def verify(self, generate: Callable[[], Awaitable[T]]) -> T:
        """Retorna o primeiro resultado bruto de uma rodada unânime.

        Raises:
            ConsistencyError: Se nenhuma rodada for unânime.
        """
        total_rounds = self._max_retries + 1
        reason = ""

        async def _run() -> T:
            # Exceção síncrona de generate() também vira falha da rodada
            return await generate()

        for round_number in range(1, total_rounds + 1):
            results = await asyncio.gather(
                *(_run() for _ in range(self._runs)),
                return_exceptions=True,
            )
            accepted, reason = self._check_round(results)
            if accepted:
                if round_number > 1:
                    logger.info("consistency_verified_after_retry", extra={"rounds": round_number})
                return results[0]

            logger.warning(
                "consistency_round_failed",
                extra={"round": round_number, "rounds_total": total_rounds, "reason": reason},
            )
            if round_number < total_rounds:
                await self._sleep(self._retry_delay)

        logger.error("consistency_exhausted", extra={"rounds": total_rounds, "reason": reason})
        raise ConsistencyError(
            f"Resultados inconsistentes após {total_rounds} rodadas",
            rounds=total_rounds,
            reason=reason,
        )

    @staticmethod
    def _check_round(results: list[Any]) -> tuple[bool, str]:
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            return False, f"error:{type(errors[0]).__name__}"
        canonical = {canonical_json(result) for result in results}
        if len(canonical) != 1:
            return False, f"divergent:{len(canonical)}"
        return True, ""

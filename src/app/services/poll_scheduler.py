"""PollScheduler: reserva e bookkeeping de consultas periódicas.

Reserva: CAS de next_poll_at contra o valor lido. Dois
enfileiradores concorrentes nunca reservam a mesma janela.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.domain.source import DEFAULT_MAX_BACKOFF_SECONDS, Source

if TYPE_CHECKING:
    from app.protocols.source_store import SourceStoreProtocol

logger = logging.getLogger(__name__)


class PollScheduler:
    """Agendamento de origens sobre um SourceStoreProtocol.

    Args:
        store: Store de origens
        rand: Gerador em [0, 1) usado no jitter do intervalo
        max_backoff: Teto (segundos) do atraso após falhas
    """

    def __init__(
        self,
        store: SourceStoreProtocol,
        *,
        rand: Callable[[], float] = random.random,
        max_backoff: int = DEFAULT_MAX_BACKOFF_SECONDS,
    ) -> None:
        self._store = store
        self._rand = rand
        self._max_backoff = max_backoff

    async def due_sources(self, now: datetime, limit: int) -> list[Source]:
        return await self._store.list_due(now, limit)

    async def reserve_from(self, source: Source, now: datetime) -> Source | None:
        """Reserva a próxima janela de consulta da origem.

        Returns:
            Source com next_poll_at = now + intervalo, ou None se outro
            enfileirador reservou primeiro.
        """
        reserved = source.reserved(now, self._rand)
        won = await self._store.compare_and_set_next_poll(
            source.key,
            expected=source.next_poll_at,
            new=reserved.next_poll_at,
        )
        if not won:
            logger.info("source_reservation_lost", extra={"source_key": source.key})
            return None
        logger.debug(
            "source_reserved",
            extra={"source_key": source.key, "next_poll_at": reserved.next_poll_at.isoformat()},
        )
        return reserved

    async def mark_attempt(self, source: Source, now: datetime) -> Source:
        updated = source.with_attempt(now)
        await self._store.update(source.key, {"last_poll_attempted_at": now})
        return updated

    async def mark_success(
        self,
        source: Source,
        now: datetime,
        cursor: dict[str, Any] | None = None,
    ) -> Source:
        """Zera falhas e, se informado, avança o cursor de sincronização."""
        updated = source.with_success(now, cursor)
        changes: dict[str, Any] = {
            "consecutive_failures": 0,
            "error_details": {},
            "last_successful_poll_at": now,
        }
        if cursor is not None:
            changes["cursor"] = cursor
        await self._store.update(source.key, changes)
        return updated

    async def mark_failure(
        self,
        source: Source,
        error_detail: dict[str, Any],
        now: datetime,
        max_backoff: int | None = None,
    ) -> Source:
        """Registra falha e adia a próxima consulta com backoff exponencial.

        Nunca levanta: falha ao persistir é logada e a Source atualizada
        em memória é retornada mesmo assim.
        """
        updated = source.with_failure(
            error_detail,
            now,
            self._max_backoff if max_backoff is None else max_backoff,
        )
        try:
            await self._store.update(
                source.key,
                {
                    "consecutive_failures": updated.consecutive_failures,
                    "error_details": updated.error_details,
                    "next_poll_at": updated.next_poll_at,
                },
            )
        except Exception as exc:
            logger.error(
                "source_mark_failure_persist_failed",
                extra={"source_key": source.key, "error_type": type(exc).__name__},
            )
        logger.warning(
            "source_poll_failed",
            extra={
                "source_key": source.key,
                "consecutive_failures": updated.consecutive_failures,
                "next_poll_at": updated.next_poll_at.isoformat(),
            },
        )
        return updated

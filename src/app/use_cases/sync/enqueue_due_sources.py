"""Use case: reservar origens vencidas e entregá-las aos workers de poll."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.poll_scheduler import PollScheduler

logger = logging.getLogger(__name__)

DEFAULT_ENQUEUE_BATCH_SIZE = 200

PollCallback = Callable[[str], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    reserved: int
    lost: int
    batches: int


class EnqueueDueSourcesUseCase:
    """Reserva origens com next_poll_at <= agora, em lotes ordenados.

    Cada origem reservada tem a chave entregue ao callback (normalmente
    o pool de workers de poll). Reservas perdidas para outro
    enfileirador são descartadas.
    """

    def __init__(
        self,
        scheduler: PollScheduler,
        on_reserved: PollCallback,
        *,
        batch_size: int = DEFAULT_ENQUEUE_BATCH_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._scheduler = scheduler
        self._on_reserved = on_reserved
        self._batch_size = batch_size
        self._clock = clock

    async def execute(self) -> EnqueueResult:
        reserved = lost = batches = 0
        while True:
            due = await self._scheduler.due_sources(self._clock(), self._batch_size)
            if not due:
                break
            batches += 1
            claimed: list[str] = []
            for source in due:
                if await self._scheduler.reserve_from(source, self._clock()) is None:
                    lost += 1
                    continue
                claimed.append(source.key)
            reserved += len(claimed)
            for key in claimed:
                await self._on_reserved(key)
            if not claimed:
                # Tudo perdido para outro enfileirador: evita laço quente
                break

        logger.info(
            "due_sources_enqueued",
            extra={"reserved": reserved, "lost": lost, "batches": batches},
        )
        return EnqueueResult(reserved=reserved, lost=lost, batches=batches)

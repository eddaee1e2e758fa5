"""PruneService: retenção de baselines, envelopes e baselines de entrega."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.protocols.delivery_store import DeliveryBaselineStoreProtocol
    from app.protocols.outbox_store import OutboxStoreProtocol
    from app.services.change_detector import ChangeDetector

logger = logging.getLogger(__name__)

DEFAULT_OUTBOX_RETENTION_DAYS = 30
DEFAULT_BASELINE_RETENTION_DAYS = 30
DEFAULT_BATCH_SIZE = 1000


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class PruneReport:
    baselines: int
    envelopes: int
    delivery_baselines: int

    def to_dict(self) -> dict[str, int]:
        return {
            "baselines": self.baselines,
            "envelopes": self.envelopes,
            "delivery_baselines": self.delivery_baselines,
        }


class PruneService:
    def __init__(
        self,
        change_detector: ChangeDetector,
        outbox_store: OutboxStoreProtocol,
        delivery_baselines: DeliveryBaselineStoreProtocol,
        *,
        baseline_retention_days: int = DEFAULT_BASELINE_RETENTION_DAYS,
        outbox_retention_days: int = DEFAULT_OUTBOX_RETENTION_DAYS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._change_detector = change_detector
        self._outbox_store = outbox_store
        self._delivery_baselines = delivery_baselines
        self._baseline_retention = timedelta(days=baseline_retention_days)
        self._outbox_retention = timedelta(days=outbox_retention_days)
        self._batch_size = batch_size
        self._clock = clock

    async def prune_outbox(self, older_than: datetime) -> int:
        """Remove envelopes terminais com updated_at < older_than, em lotes."""
        total = 0
        while True:
            deleted = await self._outbox_store.delete_terminal_before(older_than, self._batch_size)
            total += deleted
            if deleted < self._batch_size:
                return total

    async def prune_delivery_baselines(self, now: datetime) -> int:
        total = 0
        while True:
            deleted = await self._delivery_baselines.delete_expired(now, self._batch_size)
            total += deleted
            if deleted < self._batch_size:
                return total

    async def run(self) -> PruneReport:
        """Aplica todas as janelas de retenção a partir de agora."""
        now = self._clock()
        report = PruneReport(
            baselines=await self._change_detector.prune_stale(
                now - self._baseline_retention, self._batch_size
            ),
            envelopes=await self.prune_outbox(now - self._outbox_retention),
            delivery_baselines=await self.prune_delivery_baselines(now),
        )
        logger.info("retention_pruned", extra=report.to_dict())
        return report

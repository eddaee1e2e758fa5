"""ChangeDetector: diff de valores de campo contra a baseline.

Valores são comparados pela serialização canônica: diferenças apenas
de ordem de chaves nunca contam como mudança. A primeira observação
de um campo cria a baseline e não deve ser propagada.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from app.domain.baseline import Baseline
from app.domain.source import Source
from utils.errors import StaleBaselineError

if TYPE_CHECKING:
    from app.protocols.baseline_store import BaselineStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_PRUNE_BATCH_SIZE = 1000


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ChangeResult:
    baseline: Baseline
    changed: bool
    first_time: bool
    previous_value: Any = None

    @property
    def should_propagate(self) -> bool:
        return self.changed and not self.first_time


class ChangeDetector:
    """Detector sobre um BaselineStoreProtocol.

    Args:
        store: Store de baselines (escrita condicional)
        track_checks: Se False, verificações sem mudança não são persistidas
        clock: Relógio UTC
    """

    def __init__(
        self,
        store: BaselineStoreProtocol,
        *,
        track_checks: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._track_checks = track_checks
        self._clock = clock

    async def detect_change(
        self,
        source: Source | str,
        row_id: str,
        field_id: str,
        current_value: Any,
        checked_at: datetime | None = None,
    ) -> ChangeResult:
        """Compara o valor atual com a baseline e persiste o resultado.

        Raises:
            StaleBaselineError: Se outra escrita alterou a baseline
                entre a leitura e a gravação.
        """
        source_key = source.key if isinstance(source, Source) else source
        checked_at = checked_at or self._clock()

        existing = await self._store.get(source_key, row_id, field_id)
        if existing is None:
            baseline = Baseline.first_seen(source_key, row_id, field_id, current_value, checked_at)
            stored = await self._store.insert(baseline)
            return ChangeResult(baseline=stored, changed=True, first_time=True)

        changed = existing.differs_from(current_value)
        if not changed and not self._track_checks:
            return ChangeResult(
                baseline=existing,
                changed=False,
                first_time=False,
                previous_value=existing.last_known_value,
            )

        updated = existing.checked(current_value, checked_at)
        stored = await self._store.compare_and_swap(updated, expected_version=existing.version)
        return ChangeResult(
            baseline=stored,
            changed=changed,
            first_time=False,
            previous_value=existing.last_known_value,
        )

    async def detect_change_with_retry(
        self,
        source: Source | str,
        row_id: str,
        field_id: str,
        current_value: Any,
        checked_at: datetime | None = None,
    ) -> ChangeResult:
        """detect_change com uma nova leitura após corrida perdida."""
        try:
            return await self.detect_change(source, row_id, field_id, current_value, checked_at)
        except StaleBaselineError:
            logger.info("baseline_write_conflict_retry", extra={"field_id": field_id})
            return await self.detect_change(source, row_id, field_id, current_value, checked_at)

    async def prune_stale(
        self,
        older_than: datetime,
        batch_size: int = DEFAULT_PRUNE_BATCH_SIZE,
    ) -> int:
        """Remove baselines não verificadas desde older_than, em lotes."""
        total = 0
        while True:
            deleted = await self._store.delete_checked_before(older_than, batch_size)
            total += deleted
            if deleted < batch_size:
                break
        logger.info("baselines_pruned", extra={"count": total})
        return total

"""Use case: uma tentativa de poll de uma origem.

mark_attempt → rate limit da origem → fetch_rows → detecção de
mudança por campo espelhado → enqueue na outbox → mark_success
(avança o cursor para o instante anterior ao fetch).
Qualquer erro registra mark_failure e é propagado.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from app.domain.envelope import (
    FieldChange,
    FieldProvenance,
    Provenance,
    ProvenanceKind,
    UpdateStrategy,
)
from app.domain.field_mapping import destination_field_name, is_email_field, is_mirrored_field
from app.domain.recipient import normalize_email
from app.observability.correlation import correlation_scope, get_correlation_id
from app.observability.metrics import record_change_detected, record_latency

if TYPE_CHECKING:
    from app.domain.source import Source
    from app.protocols.source_adapter import SourceAdapterProtocol, SourceRow
    from app.protocols.source_store import SourceStoreProtocol
    from app.services.change_detector import ChangeDetector
    from app.services.outbox import Outbox
    from app.services.poll_scheduler import PollScheduler
    from app.services.rate_limiter import RateLimiterRegistry
    from config.settings.infra.rate_limit import RateLimitSettings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class PollResult:
    source_key: str
    rows: int = 0
    changed_fields: int = 0
    first_seen_fields: int = 0
    envelopes: int = 0
    skipped_rows: int = 0
    cursor: dict[str, Any] | None = None


class PollSourceUseCase:
    def __init__(
        self,
        sources: SourceStoreProtocol,
        scheduler: PollScheduler,
        adapter: SourceAdapterProtocol,
        change_detector: ChangeDetector,
        outbox: Outbox,
        rate_limiter: RateLimiterRegistry,
        rate_limit: RateLimitSettings,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._sources = sources
        self._scheduler = scheduler
        self._adapter = adapter
        self._change_detector = change_detector
        self._outbox = outbox
        self._rate_limiter = rate_limiter
        self._rate_limit = rate_limit
        self._clock = clock

    async def execute(self, source_key: str) -> PollResult | None:
        """Executa o poll. Retorna None se a origem não existe mais.

        Raises:
            Exception: Qualquer erro do poll, após mark_failure.
        """
        with correlation_scope(get_correlation_id() or None):
            return await self._execute(source_key)

    async def _execute(self, source_key: str) -> PollResult | None:
        source = await self._sources.get(source_key)
        if source is None:
            logger.warning("poll_source_not_found", extra={"source_key": source_key})
            return None

        started = time.perf_counter()
        source = await self._scheduler.mark_attempt(source, self._clock())
        try:
            result = await self._poll(source)
        except Exception as exc:
            now = self._clock()
            await self._scheduler.mark_failure(
                source,
                {"message": str(exc), "klass": type(exc).__name__, "at": now.isoformat()},
                now,
            )
            raise

        await self._scheduler.mark_success(source, self._clock(), result.cursor)
        record_latency("poll_source", "execute", (time.perf_counter() - started) * 1000)
        logger.info(
            "source_polled",
            extra={
                "source_key": source.key,
                "rows": result.rows,
                "changed_fields": result.changed_fields,
                "envelopes": result.envelopes,
            },
        )
        return result

    async def _poll(self, source: Source) -> PollResult:
        bucket = self._rate_limit.source_bucket(source.source_id)
        self._rate_limiter.register(
            bucket, self._rate_limit.source_limit, self._rate_limit.source_period
        )
        await self._rate_limiter.acquire(bucket)
        # Marco tomado antes da busca: linhas alteradas durante o poll voltam no próximo
        fetch_started_at = self._clock()
        rows = await self._adapter.fetch_rows(source, source.sync_since)

        result = PollResult(
            source_key=source.key, rows=len(rows), cursor={"since": fetch_started_at}
        )
        for row in rows:
            await self._process_row(source, row, result)
        if result.changed_fields or result.first_seen_fields:
            record_change_detected(
                source.key, result.changed_fields, first_time=result.first_seen_fields > 0
            )
        return result

    async def _process_row(self, source: Source, row: SourceRow, result: PollResult) -> None:
        recipient = self._row_recipient(row)
        if recipient is None:
            result.skipped_rows += 1
            logger.debug("row_without_recipient", extra={"row_id": row.row_id})
            return

        now = self._clock()
        changes: dict[str, FieldChange] = {}
        provenance_fields: list[FieldProvenance] = []
        for field_id, source_field in row.fields.items():
            if not is_mirrored_field(source_field.name):
                continue
            detected = await self._change_detector.detect_change_with_retry(
                source, row.row_id, field_id, source_field.value, checked_at=now
            )
            if detected.first_time:
                result.first_seen_fields += 1
            if not detected.should_propagate:
                continue
            result.changed_fields += 1
            changes[destination_field_name(source_field.name)] = FieldChange(
                value=source_field.value,
                strategy=UpdateStrategy.UPSERT,
                modified_at=now,
            )
            provenance_fields.append(
                FieldProvenance(
                    source_field_id=field_id,
                    source_field_name=source_field.name,
                    former_value=detected.previous_value,
                    new_value=source_field.value,
                    modified_at=now,
                )
            )

        if not changes:
            return
        provenance = Provenance(
            kind=ProvenanceKind.SOURCE,
            source_key=source.key,
            source_type=source.source_type.value,
            source_name=source.display_name or source.source_id,
            table_id=row.table_id,
            record_id=row.record_id,
            fields=tuple(provenance_fields),
            created_from="poll",
            source_metadata=dict(source.metadata),
        )
        await self._outbox.enqueue(recipient, changes, provenance, source_key=source.key)
        result.envelopes += 1

    @staticmethod
    def _row_recipient(row: SourceRow) -> str | None:
        recipient = normalize_email(row.recipient)
        if recipient is not None:
            return recipient
        for source_field in row.fields.values():
            if is_email_field(source_field.name) and isinstance(source_field.value, str):
                return normalize_email(source_field.value)
        return None

"""Stores em memória — apenas para desenvolvimento e testes.

ATENÇÃO: Não usar em staging/production. Sem persistência entre reinícios.

Toda operação condicional (CAS) é feita sob threading.Lock, nunca
mantido durante I/O (não há I/O aqui).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from typing import Any

from app.domain.baseline import Baseline
from app.domain.envelope import ContactChangeAudit, DeliveryBaseline, Envelope
from app.domain.ignore_rule import IgnoreRule
from app.domain.source import Source, SourceType
from app.protocols.baseline_store import BaselineStoreProtocol
from app.protocols.delivery_store import (
    ContactAuditStoreProtocol,
    DeliveryBaselineStoreProtocol,
)
from app.protocols.ignore_rule_store import IgnoreRuleStoreProtocol
from app.protocols.outbox_store import OutboxStoreProtocol
from app.protocols.rate_limit_store import AcquireResult, RateLimitStoreProtocol
from app.protocols.source_store import SourceStoreProtocol
from fsm.manager import require_transition
from fsm.states import TERMINAL_STATUSES, EnvelopeStatus
from utils.errors import DuplicateIgnoreRuleError, StaleBaselineError, StaleEnvelopeError

logger = logging.getLogger(__name__)


class MemoryRateLimitStore(RateLimitStoreProtocol):
    """Janela deslizante em memória (mesma semântica do script Lua)."""

    def __init__(self) -> None:
        self._windows: dict[str, list[int]] = {}
        self._lock = threading.Lock()

    async def try_acquire(
        self,
        bucket: str,
        now_ms: int,
        limit: int,
        period_ms: int,
    ) -> AcquireResult:
        with self._lock:
            window_from = now_ms - period_ms
            window = [score for score in self._windows.get(bucket, []) if score > window_from]
            if len(window) < limit:
                window.append(now_ms)
                self._windows[bucket] = window
                return AcquireResult(acquired=True)
            self._windows[bucket] = window
            return AcquireResult(acquired=False, oldest_ms=float(min(window)))

    def reservations(self, bucket: str) -> list[int]:
        """Scores registrados no bucket (inspeção em testes)."""
        with self._lock:
            return list(self._windows.get(bucket, []))


class MemorySourceStore(SourceStoreProtocol):
    """Store de origens em memória (somente dev/test)."""

    def __init__(self) -> None:
        self._sources: dict[str, Source] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Source | None:
        with self._lock:
            source = self._sources.get(key)
            return replace(source) if source else None

    async def save(self, source: Source) -> None:
        with self._lock:
            self._sources[source.key] = replace(source)

    async def update(self, key: str, changes: dict[str, Any]) -> None:
        with self._lock:
            if key not in self._sources:
                raise KeyError(key)
            self._sources[key] = replace(self._sources[key], **changes)

    async def list_due(self, now: datetime, limit: int) -> list[Source]:
        with self._lock:
            due = [s for s in self._sources.values() if s.next_poll_at <= now]
        due.sort(key=lambda s: s.next_poll_at)
        return [replace(s) for s in due[:limit]]

    async def compare_and_set_next_poll(
        self,
        key: str,
        expected: datetime,
        new: datetime,
    ) -> bool:
        with self._lock:
            current = self._sources.get(key)
            if current is None or current.next_poll_at != expected:
                return False
            self._sources[key] = replace(current, next_poll_at=new)
            return True


class MemoryBaselineStore(BaselineStoreProtocol):
    """Store de baselines em memória (somente dev/test)."""

    def __init__(self) -> None:
        self._baselines: dict[tuple[str, str, str], Baseline] = {}
        self._lock = threading.Lock()

    async def get(self, source_key: str, row_id: str, field_id: str) -> Baseline | None:
        with self._lock:
            baseline = self._baselines.get((source_key, row_id, field_id))
            return replace(baseline) if baseline else None

    async def insert(self, baseline: Baseline) -> Baseline:
        with self._lock:
            if baseline.key in self._baselines:
                raise StaleBaselineError(f"Baseline já existe: {baseline.doc_id}")
            stored = replace(baseline, version=0)
            self._baselines[baseline.key] = stored
            return replace(stored)

    async def compare_and_swap(self, baseline: Baseline, expected_version: int) -> Baseline:
        with self._lock:
            current = self._baselines.get(baseline.key)
            if current is None or current.version != expected_version:
                raise StaleBaselineError(f"Baseline alterada: {baseline.doc_id}")
            stored = replace(baseline, version=expected_version + 1)
            self._baselines[baseline.key] = stored
            return replace(stored)

    async def delete_checked_before(self, older_than: datetime, limit: int) -> int:
        with self._lock:
            stale = [k for k, b in self._baselines.items() if b.last_checked_at < older_than]
            for key in stale[:limit]:
                del self._baselines[key]
            return min(len(stale), limit)

    def __len__(self) -> int:
        return len(self._baselines)


class MemoryOutboxStore(OutboxStoreProtocol):
    """Outbox em memória (somente dev/test)."""

    def __init__(self) -> None:
        self._envelopes: dict[str, Envelope] = {}
        self._lock = threading.Lock()

    async def add(self, envelope: Envelope) -> Envelope:
        with self._lock:
            self._envelopes[envelope.id] = replace(envelope)
            return replace(envelope)

    async def get(self, envelope_id: str) -> Envelope | None:
        with self._lock:
            envelope = self._envelopes.get(envelope_id)
            return replace(envelope) if envelope else None

    async def find(
        self,
        *,
        status: EnvelopeStatus | None = None,
        recipient: str | None = None,
        limit: int | None = 100,
    ) -> list[Envelope]:
        with self._lock:
            envelopes = [
                e for e in self._envelopes.values()
                if (status is None or e.status == status)
                and (recipient is None or e.recipient == recipient)
            ]
        envelopes.sort(key=lambda e: e.created_at)
        if limit is not None:
            envelopes = envelopes[:limit]
        return [replace(e) for e in envelopes]

    async def claim_queued(self, limit: int, now: datetime) -> list[Envelope]:
        claimed: list[Envelope] = []
        with self._lock:
            queued = sorted(
                (e for e in self._envelopes.values() if e.status == EnvelopeStatus.QUEUED),
                key=lambda e: e.created_at,
            )
            for envelope in queued[:limit]:
                updated = self._apply(envelope, EnvelopeStatus.DISPATCHING, "dispatcher_claim", None, now)
                claimed.append(replace(updated))
        return claimed

    async def transition(
        self,
        envelope: Envelope,
        target: EnvelopeStatus,
        *,
        trigger: str,
        error: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Envelope:
        with self._lock:
            current = self._envelopes.get(envelope.id)
            if current is None:
                raise KeyError(envelope.id)
            if current.version != envelope.version:
                raise StaleEnvelopeError(f"Envelope alterado: {envelope.id}")
            return replace(self._apply(current, target, trigger, error, now))

    async def delete_terminal_before(self, older_than: datetime, limit: int) -> int:
        with self._lock:
            old = [
                e.id for e in self._envelopes.values()
                if e.status in TERMINAL_STATUSES and e.updated_at < older_than
            ]
            for envelope_id in old[:limit]:
                del self._envelopes[envelope_id]
            return min(len(old), limit)

    async def release_stale_claims(self, older_than: datetime, limit: int, now: datetime) -> int:
        with self._lock:
            stale = sorted(
                (
                    e for e in self._envelopes.values()
                    if e.status == EnvelopeStatus.DISPATCHING and e.updated_at < older_than
                ),
                key=lambda e: e.created_at,
            )
            for envelope in stale[:limit]:
                self._apply(envelope, EnvelopeStatus.QUEUED, "claim_lease_expired", None, now)
            return min(len(stale), limit)

    def _apply(
        self,
        current: Envelope,
        target: EnvelopeStatus,
        trigger: str,
        error: dict[str, Any] | None,
        now: datetime | None,
    ) -> Envelope:
        transition = require_transition(current.id, current.status, target, trigger)
        updated = current.with_status(target, error=error, now=now)
        self._envelopes[current.id] = updated
        logger.debug("envelope_status_changed", extra=transition.to_log_dict())
        return updated


class MemoryDeliveryBaselineStore(DeliveryBaselineStoreProtocol):
    def __init__(self) -> None:
        self._baselines: dict[tuple[str, str], DeliveryBaseline] = {}
        self._lock = threading.Lock()

    async def get_many(
        self,
        recipient: str,
        field_names: Iterable[str],
    ) -> dict[str, DeliveryBaseline]:
        with self._lock:
            return {
                name: replace(self._baselines[(recipient, name)])
                for name in field_names
                if (recipient, name) in self._baselines
            }

    async def exists_for(self, recipient: str) -> bool:
        with self._lock:
            return any(key[0] == recipient for key in self._baselines)

    async def upsert_many(self, baselines: Iterable[DeliveryBaseline]) -> None:
        with self._lock:
            for baseline in baselines:
                self._baselines[(baseline.recipient, baseline.field_name)] = replace(baseline)

    async def delete_expired(self, now: datetime, limit: int) -> int:
        with self._lock:
            expired = [k for k, b in self._baselines.items() if b.is_expired(now)]
            for key in expired[:limit]:
                del self._baselines[key]
            return min(len(expired), limit)


class MemoryContactAuditStore(ContactAuditStoreProtocol):
    def __init__(self) -> None:
        self._records: list[ContactChangeAudit] = []
        self._lock = threading.Lock()

    async def append_many(self, audits: Iterable[ContactChangeAudit]) -> None:
        with self._lock:
            self._records.extend(audits)

    async def list_for_recipient(self, recipient: str, limit: int = 100) -> list[ContactChangeAudit]:
        with self._lock:
            records = [r for r in self._records if r.recipient == recipient]
        records.sort(key=lambda r: r.occurred_at, reverse=True)
        return records[:limit]

    def get_records(self) -> list[ContactChangeAudit]:
        """Retorna todos os registros (para testes)."""
        with self._lock:
            return list(self._records)


class MemoryIgnoreRuleStore(IgnoreRuleStoreProtocol):
    def __init__(self) -> None:
        self._rules: dict[str, IgnoreRule] = {}
        self._lock = threading.Lock()

    async def add(self, rule: IgnoreRule) -> IgnoreRule:
        with self._lock:
            for existing in self._rules.values():
                if (existing.source_type, existing.pattern) == (rule.source_type, rule.pattern):
                    raise DuplicateIgnoreRuleError(
                        "Regra de ignore duplicada",
                        details={"source_type": rule.source_type.value},
                    )
            self._rules[rule.id] = rule
            return rule

    async def list_for(self, source_type: SourceType) -> list[IgnoreRule]:
        with self._lock:
            rules = [r for r in self._rules.values() if r.source_type == source_type]
        return sorted(rules, key=lambda r: r.created_at)

    async def remove(self, rule_id: str) -> bool:
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

"""OutboxDispatcher: drena envelopes queued para o destino.

Antes do primeiro lote, claims com lease expirado (dispatcher que morreu
no meio do lote) voltam para queued.

Fluxo por lote:
    1. claim_queued: move os envelopes mais antigos para dispatching
    2. agrupa por destinatário (ordem de criação preservada)
    3. preflight: sem baselines de entrega, consulta o contato no destino;
       contato existente semeia as baselines, contato novo recebe os
       campos iniciais (userGroup, source)
    4. merge dos payloads: por campo vence o maior modified_at
    5. descarta campos iguais à baseline de entrega não expirada
       (exceto override)
    6. aplica estratégias: upsert descarta None, override mantém
    7. rate limit + update_contact
    8. grava baselines de entrega, auditoria e status terminal

Não há retry automático: falhas ficam em `failed` com o erro
estruturado, e o re-enfileiramento é decisão externa. Se o rate limiter
falha (infra), os grupos ainda não processados do lote voltam para queued
antes do erro propagar.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from app.domain.canonical import canonical_json
from app.domain.envelope import (
    DEFAULT_DELIVERY_BASELINE_TTL_DAYS,
    ContactChangeAudit,
    DeliveryBaseline,
    Envelope,
    FieldChange,
    UpdateStrategy,
)
from app.observability.correlation import correlation_scope, get_correlation_id
from app.observability.metrics import record_dispatch_outcome, record_latency
from config.logging import mask_recipient
from fsm.states import EnvelopeStatus
from utils.errors import InfrastructureError, StaleEnvelopeError

if TYPE_CHECKING:
    from app.protocols.delivery_store import (
        ContactAuditStoreProtocol,
        DeliveryBaselineStoreProtocol,
    )
    from app.protocols.destination_client import DestinationClientProtocol
    from app.protocols.outbox_store import OutboxStoreProtocol
    from app.services.rate_limiter import RateLimiterRegistry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_DESTINATION_BUCKET = "rate:loops:global"
DEFAULT_CLAIM_LEASE_SECONDS = 300

# Propriedades de sistema do contato, nunca semeadas como baseline
SYSTEM_CONTACT_FIELDS = frozenset({
    "id", "email", "userId", "createdAt", "updatedAt", "unsubscribedAt", "listMemberships",
})


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class DispatchSummary:
    """Contadores de um drain (envelopes por status final)."""

    claimed: int = 0
    recipients: int = 0
    reclaimed: int = 0
    released: int = 0
    statuses: dict[str, int] = field(default_factory=dict)

    def record(self, status: EnvelopeStatus, envelope_count: int) -> None:
        self.recipients += 1
        self.statuses[status.value] = self.statuses.get(status.value, 0) + envelope_count

    def count(self, status: EnvelopeStatus) -> int:
        return self.statuses.get(status.value, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "claimed": self.claimed,
            "recipients": self.recipients,
            "reclaimed": self.reclaimed,
            "released": self.released,
            **self.statuses,
        }


@dataclass(frozen=True, slots=True)
class MergedField:
    """Mudança vencedora de um campo e o envelope de onde veio."""

    change: FieldChange
    envelope: Envelope


def group_by_recipient(envelopes: Iterable[Envelope]) -> dict[str, list[Envelope]]:
    groups: dict[str, list[Envelope]] = {}
    for envelope in sorted(envelopes, key=lambda e: e.created_at):
        groups.setdefault(envelope.recipient, []).append(envelope)
    return groups


def merge_payloads(envelopes: Iterable[Envelope]) -> dict[str, MergedField]:
    """Combina payloads; por campo vence o modified_at mais recente.

    Empate mantém o primeiro (envelope mais antigo).
    """
    merged: dict[str, MergedField] = {}
    for envelope in envelopes:
        for name, change in envelope.changes().items():
            current = merged.get(name)
            if current is None or change.modified_at > current.change.modified_at:
                merged[name] = MergedField(change=change, envelope=envelope)
    return merged


def filter_by_baselines(
    merged: dict[str, MergedField],
    baselines: dict[str, DeliveryBaseline],
    now: datetime,
) -> dict[str, MergedField]:
    """Descarta campos cujo valor já foi entregue e a baseline não expirou."""
    filtered: dict[str, MergedField] = {}
    for name, item in merged.items():
        baseline = baselines.get(name)
        if (
            item.change.is_override
            or baseline is None
            or baseline.is_expired(now)
            or canonical_json(baseline.last_sent_value) != canonical_json(item.change.value)
        ):
            filtered[name] = item
    return filtered


def apply_strategies(filtered: dict[str, MergedField]) -> dict[str, Any]:
    """upsert: None nunca é enviado. override: valor enviado como está."""
    fields: dict[str, Any] = {}
    for name, item in filtered.items():
        if item.change.strategy == UpdateStrategy.OVERRIDE or item.change.value is not None:
            fields[name] = item.change.value
    return fields


def seed_delivery_baselines(
    recipient: str,
    contact: dict[str, Any],
    now: datetime,
    ttl_days: int = DEFAULT_DELIVERY_BASELINE_TTL_DAYS,
) -> list[DeliveryBaseline]:
    """Baselines a partir das propriedades atuais de um contato existente.

    Propriedades de sistema e valores None são ignorados.
    """
    return [
        DeliveryBaseline.sent(recipient, name, value, now, ttl_days)
        for name, value in contact.items()
        if name not in SYSTEM_CONTACT_FIELDS and value is not None
    ]


def initial_fields_for_new_contact(
    envelope: Envelope,
    user_group: str | None,
    now: datetime,
) -> dict[str, FieldChange]:
    """Campos enviados na criação de um contato: userGroup e source.

    source é humanizado a partir da origem, ex.: "Airtable - Inscrições".
    """
    fields: dict[str, FieldChange] = {}
    if user_group:
        fields["userGroup"] = FieldChange(value=user_group, modified_at=now)
    provenance = envelope.provenance
    source_type = provenance.source_type
    source_key = provenance.source_key or envelope.source_key or ""
    source_name = provenance.source_name or source_key.partition(":")[2]
    if source_type and source_name:
        fields["source"] = FieldChange(
            value=f"{source_type.replace('_', ' ').capitalize()} - {source_name}",
            modified_at=now,
        )
    return fields


class OutboxDispatcher:
    """Dispatcher da outbox.

    Args:
        store: Store da outbox
        destination: Cliente do destino
        rate_limiter: Registro com o bucket do destino registrado
        delivery_baselines: Store de baselines de entrega
        audits: Store de auditoria
        bucket: Bucket de rate limit do destino
        delivery_baseline_ttl_days: Validade das baselines de entrega
        claim_lease_seconds: Idade (updated_at) a partir da qual um envelope
            em dispatching é considerado abandonado
        new_contact_user_group: userGroup de contatos novos (None desliga)
        clock: Relógio UTC
    """

    def __init__(
        self,
        store: OutboxStoreProtocol,
        destination: DestinationClientProtocol,
        rate_limiter: RateLimiterRegistry,
        *,
        delivery_baselines: DeliveryBaselineStoreProtocol,
        audits: ContactAuditStoreProtocol,
        bucket: str = DEFAULT_DESTINATION_BUCKET,
        delivery_baseline_ttl_days: int = DEFAULT_DELIVERY_BASELINE_TTL_DAYS,
        claim_lease_seconds: int = DEFAULT_CLAIM_LEASE_SECONDS,
        new_contact_user_group: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._destination = destination
        self._rate_limiter = rate_limiter
        self._delivery_baselines = delivery_baselines
        self._audits = audits
        self._bucket = bucket
        self._ttl_days = delivery_baseline_ttl_days
        self._lease = timedelta(seconds=claim_lease_seconds)
        self._user_group = new_contact_user_group
        self._clock = clock

    async def drain(self, batch_size: int = DEFAULT_BATCH_SIZE) -> DispatchSummary:
        """Processa lotes até a fila queued esvaziar.

        Raises:
            InfrastructureError: Se o rate limiter falhar. Os envelopes do
                grupo em andamento já estarão como failed e os dos grupos
                seguintes do lote terão voltado para queued.
        """
        summary = DispatchSummary()
        started = time.perf_counter()
        with correlation_scope(get_correlation_id() or None):
            summary.reclaimed = await self.reclaim_stale_claims(batch_size)
            while True:
                claimed = await self._store.claim_queued(batch_size, self._clock())
                summary.claimed += len(claimed)
                groups = list(group_by_recipient(claimed).items())
                for index, (recipient, envelopes) in enumerate(groups):
                    try:
                        status = await self.dispatch_recipient(recipient, envelopes)
                    except InfrastructureError:
                        pending = [e for _, group in groups[index + 1:] for e in group]
                        summary.released += await self._release(pending)
                        logger.error("outbox_drain_interrupted", extra=summary.to_dict())
                        raise
                    summary.record(status, len(envelopes))
                if len(claimed) < batch_size:
                    break

            record_latency("dispatcher", "drain", (time.perf_counter() - started) * 1000)
            logger.info("outbox_drained", extra=summary.to_dict())
        return summary

    async def reclaim_stale_claims(self, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Devolve para queued os envelopes em dispatching além do lease."""
        now = self._clock()
        older_than = now - self._lease
        total = 0
        while True:
            released = await self._store.release_stale_claims(older_than, batch_size, now)
            total += released
            if released < batch_size:
                break
        if total:
            logger.warning("outbox_stale_claims_released", extra={"count": total})
        return total

    async def _release(self, envelopes: list[Envelope]) -> int:
        """Devolve para queued envelopes reivindicados e não processados."""
        now = self._clock()
        released = 0
        for envelope in envelopes:
            try:
                await self._store.transition(
                    envelope,
                    EnvelopeStatus.QUEUED,
                    trigger="dispatch_interrupted",
                    now=now,
                )
            except Exception as exc:
                # Fica em dispatching até o lease expirar
                logger.error(
                    "envelope_release_failed",
                    extra={"envelope_id": envelope.id, "error_type": type(exc).__name__},
                )
                continue
            released += 1
        return released

    async def dispatch_recipient(self, recipient: str, envelopes: list[Envelope]) -> EnvelopeStatus:
        """Entrega os envelopes (já em dispatching) de um destinatário."""
        now = self._clock()
        try:
            return await self._deliver(recipient, envelopes, now)
        except _DeliveryFailed as failure:
            await self._finalize(envelopes, EnvelopeStatus.FAILED, failure.error)
            record_dispatch_outcome(EnvelopeStatus.FAILED.value, len(envelopes))
            if isinstance(failure.__cause__, InfrastructureError):
                raise failure.__cause__ from None
            return EnvelopeStatus.FAILED
        except Exception as exc:
            logger.error(
                "dispatch_processing_error",
                extra={"recipient": mask_recipient(recipient), "error_type": type(exc).__name__},
            )
            error = _error_detail(exc, stage="processing", occurred_at=now)
            await self._finalize(envelopes, EnvelopeStatus.FAILED, error)
            record_dispatch_outcome(EnvelopeStatus.FAILED.value, len(envelopes))
            return EnvelopeStatus.FAILED

    async def _deliver(self, recipient: str, envelopes: list[Envelope], now: datetime) -> EnvelopeStatus:
        contact_exists = await self._preflight(recipient, envelopes, now)
        merged = merge_payloads(envelopes)
        if not contact_exists:
            # Envelopes na fila têm precedência sobre os campos iniciais
            initial = initial_fields_for_new_contact(envelopes[0], self._user_group, now)
            for name, change in initial.items():
                merged.setdefault(name, MergedField(change=change, envelope=envelopes[0]))
        baselines = await self._delivery_baselines.get_many(recipient, merged.keys())
        filtered = filter_by_baselines(merged, baselines, now)
        fields = apply_strategies(filtered)
        if not fields:
            await self._finalize(envelopes, EnvelopeStatus.IGNORED_NOOP)
            record_dispatch_outcome(EnvelopeStatus.IGNORED_NOOP.value, len(envelopes))
            return EnvelopeStatus.IGNORED_NOOP

        response = await self._send(recipient, fields, now)
        request_id = str(response.get("id") or response.get("request_id") or uuid.uuid4().hex)

        await self._delivery_baselines.upsert_many(
            DeliveryBaseline.sent(recipient, name, value, now, self._ttl_days)
            for name, value in fields.items()
        )
        await self._audits.append_many(
            self._build_audits(recipient, fields, filtered, baselines, response, request_id, now)
        )

        status = (
            EnvelopeStatus.SENT if len(fields) == len(filtered) else EnvelopeStatus.PARTIALLY_SENT
        )
        await self._finalize(envelopes, status)
        record_dispatch_outcome(status.value, len(envelopes), len(fields))
        logger.info(
            "contact_updated",
            extra={
                "recipient": mask_recipient(recipient),
                "field_count": len(fields),
                "envelope_count": len(envelopes),
                "status": status.value,
                "request_id": request_id,
            },
        )
        return status

    async def _preflight(self, recipient: str, envelopes: list[Envelope], now: datetime) -> bool:
        """Garante baselines de entrega para o contato.

        Returns:
            False somente se o contato ainda não existe no destino.
            Envelopes sem origem (ex.: self-service) não consultam o destino.
        """
        if not any(e.provenance.source_key or e.source_key for e in envelopes):
            return True
        if await self._delivery_baselines.exists_for(recipient):
            return True

        try:
            await self._rate_limiter.acquire(self._bucket)
            contact = await self._destination.find_contact(recipient)
        except Exception as exc:
            logger.error(
                "dispatch_preflight_error",
                extra={"recipient": mask_recipient(recipient), "error_type": type(exc).__name__},
            )
            raise _DeliveryFailed(
                _error_detail(exc, stage="preflight_check", occurred_at=now)
            ) from exc

        if contact is None:
            return False
        seeded = seed_delivery_baselines(recipient, contact, now, self._ttl_days)
        if seeded:
            await self._delivery_baselines.upsert_many(seeded)
        logger.info(
            "delivery_baselines_seeded",
            extra={"recipient": mask_recipient(recipient), "field_count": len(seeded)},
        )
        return True

    async def _send(self, recipient: str, fields: dict[str, Any], now: datetime) -> dict[str, Any]:
        try:
            await self._rate_limiter.acquire(self._bucket)
        except Exception as exc:
            raise _DeliveryFailed(
                _error_detail(exc, stage="rate_limit", occurred_at=now, payload_sent=fields)
            ) from exc

        response: Any = None
        try:
            response = await self._destination.update_contact(recipient, fields)
        except Exception as exc:
            logger.error(
                "destination_update_error",
                extra={"recipient": mask_recipient(recipient), "error_type": type(exc).__name__},
            )
            raise _DeliveryFailed(
                _error_detail(exc, stage="update_contact", occurred_at=now, payload_sent=fields)
            ) from exc

        if not isinstance(response, dict) or response.get("success") is not True:
            logger.error(
                "destination_update_rejected",
                extra={"recipient": mask_recipient(recipient)},
            )
            raise _DeliveryFailed({
                "message": "Destination update did not succeed",
                "klass": "DestinationUpdateRejected",
                "stage": "update_contact",
                "occurred_at": now.isoformat(),
                "payload_sent": fields,
                "response": response,
            })
        return response

    def _build_audits(
        self,
        recipient: str,
        fields: dict[str, Any],
        filtered: dict[str, MergedField],
        baselines: dict[str, DeliveryBaseline],
        response: dict[str, Any],
        request_id: str,
        now: datetime,
    ) -> list[ContactChangeAudit]:
        audits: list[ContactChangeAudit] = []
        for name, value in fields.items():
            item = filtered[name]
            provenance = item.envelope.provenance
            field_provenance = provenance.field_for(name)
            previous = baselines.get(name)
            audits.append(
                ContactChangeAudit(
                    occurred_at=now,
                    recipient=recipient,
                    field_name=name,
                    strategy=item.change.strategy,
                    new_destination_value=value,
                    former_destination_value=previous.last_sent_value if previous else None,
                    former_source_value=field_provenance.former_value if field_provenance else None,
                    new_source_value=field_provenance.new_value if field_provenance else None,
                    source_key=provenance.source_key or item.envelope.source_key,
                    table_id=provenance.table_id,
                    record_id=provenance.record_id,
                    source_field_id=field_provenance.source_field_id if field_provenance else None,
                    is_self_service=provenance.is_self_service,
                    provenance={
                        "envelope_id": item.envelope.id,
                        "source_type": provenance.source_type,
                        "source_metadata": dict(provenance.source_metadata),
                        "destination_response": response,
                    },
                    request_id=request_id,
                )
            )
        return audits

    async def _finalize(
        self,
        envelopes: list[Envelope],
        status: EnvelopeStatus,
        error: dict[str, Any] | None = None,
    ) -> None:
        now = self._clock()
        for envelope in envelopes:
            try:
                await self._store.transition(
                    envelope,
                    status,
                    trigger="dispatch_result",
                    error=error,
                    now=now,
                )
            except StaleEnvelopeError:
                logger.warning(
                    "envelope_finalize_conflict",
                    extra={"envelope_id": envelope.id, "status": status.value},
                )


class _DeliveryFailed(Exception):
    def __init__(self, error: dict[str, Any]) -> None:
        super().__init__(error.get("message", "delivery failed"))
        self.error = error


def _error_detail(
    exc: BaseException,
    *,
    stage: str,
    occurred_at: datetime,
    payload_sent: dict[str, Any] | None = None,
) -> dict[str, Any]:
    detail: dict[str, Any] = {
        "message": str(exc),
        "klass": type(exc).__name__,
        "stage": stage,
        "occurred_at": occurred_at.isoformat(),
    }
    if payload_sent is not None:
        detail["payload_sent"] = payload_sent
    return detail

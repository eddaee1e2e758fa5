"""Envelope - unidade de trabalho da outbox, e registros associados.

Payload: {nome_do_campo_no_destino: FieldChange serializado}.
Provenance registra de onde cada campo veio, para auditoria.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.domain.field_mapping import destination_field_name
from fsm.states import DEFAULT_INITIAL_STATUS, EnvelopeStatus, parse_status

DEFAULT_DELIVERY_BASELINE_TTL_DAYS = 90


def _utcnow() -> datetime:
    return datetime.now(UTC)


def new_envelope_id() -> str:
    return uuid.uuid4().hex


class UpdateStrategy(StrEnum):
    """Como o valor do campo é aplicado no destino.

    UPSERT: None nunca apaga o valor existente no destino.
    OVERRIDE: valor enviado como está (inclusive None).
    """

    UPSERT = "upsert"
    OVERRIDE = "override"


class ProvenanceKind(StrEnum):
    SOURCE = "source"
    SELF_SERVICE = "self_service"


class FieldChange(BaseModel):
    """Mudança de um campo destinada ao contato."""

    model_config = ConfigDict(frozen=True)

    value: Any = None
    strategy: UpdateStrategy = UpdateStrategy.UPSERT
    modified_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_override(self) -> bool:
        return self.strategy == UpdateStrategy.OVERRIDE


@dataclass(frozen=True, slots=True)
class FieldProvenance:
    source_field_id: str | None
    source_field_name: str | None
    former_value: Any = None
    new_value: Any = None
    modified_at: datetime | None = None

    @property
    def destination_field(self) -> str | None:
        if not self.source_field_name:
            return None
        return destination_field_name(self.source_field_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_field_id": self.source_field_id,
            "source_field_name": self.source_field_name,
            "former_value": self.former_value,
            "new_value": self.new_value,
            "modified_at": self.modified_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldProvenance:
        return cls(
            source_field_id=data.get("source_field_id"),
            source_field_name=data.get("source_field_name"),
            former_value=data.get("former_value"),
            new_value=data.get("new_value"),
            modified_at=data.get("modified_at"),
        )


@dataclass(frozen=True, slots=True)
class Provenance:
    """Origem das mudanças de um envelope."""

    kind: ProvenanceKind = ProvenanceKind.SOURCE
    source_key: str | None = None
    source_type: str | None = None
    source_name: str | None = None
    table_id: str | None = None
    record_id: str | None = None
    fields: tuple[FieldProvenance, ...] = ()
    created_from: str | None = None
    source_metadata: dict[str, Any] = field(default_factory=dict)
    requeued_from: str | None = None

    @property
    def is_self_service(self) -> bool:
        return self.kind == ProvenanceKind.SELF_SERVICE

    def field_for(self, destination_field: str) -> FieldProvenance | None:
        """Proveniência do campo de destino (último registro vence)."""
        match = None
        for entry in self.fields:
            if entry.destination_field == destination_field:
                match = entry
        return match

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source_key": self.source_key,
            "source_type": self.source_type,
            "source_name": self.source_name,
            "table_id": self.table_id,
            "record_id": self.record_id,
            "fields": [entry.to_dict() for entry in self.fields],
            "created_from": self.created_from,
            "source_metadata": dict(self.source_metadata),
            "requeued_from": self.requeued_from,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Provenance:
        data = data or {}
        return cls(
            kind=ProvenanceKind(data.get("kind") or ProvenanceKind.SOURCE),
            source_key=data.get("source_key"),
            source_type=data.get("source_type"),
            source_name=data.get("source_name"),
            table_id=data.get("table_id"),
            record_id=data.get("record_id"),
            fields=tuple(FieldProvenance.from_dict(item) for item in data.get("fields") or []),
            created_from=data.get("created_from"),
            source_metadata=dict(data.get("source_metadata") or {}),
            requeued_from=data.get("requeued_from"),
        )


@dataclass(slots=True)
class Envelope:
    """Item da outbox. Status só muda via tabela de transições do fsm."""

    recipient: str
    payload: dict[str, dict[str, Any]]
    provenance: Provenance = field(default_factory=Provenance)
    status: EnvelopeStatus = DEFAULT_INITIAL_STATUS
    error: dict[str, Any] | None = None
    source_key: str | None = None
    id: str = field(default_factory=new_envelope_id)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    version: int = 0

    def changes(self) -> dict[str, FieldChange]:
        return {name: FieldChange.model_validate(raw) for name, raw in self.payload.items()}

    def with_status(
        self,
        status: EnvelopeStatus,
        *,
        error: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Envelope:
        return replace(
            self,
            status=status,
            error=error,
            updated_at=now or _utcnow(),
            version=self.version + 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recipient": self.recipient,
            "payload": self.payload,
            "provenance": self.provenance.to_dict(),
            "status": self.status.value,
            "error": self.error,
            "source_key": self.source_key,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Envelope:
        return cls(
            id=data["id"],
            recipient=data["recipient"],
            payload=dict(data.get("payload") or {}),
            provenance=Provenance.from_dict(data.get("provenance")),
            status=parse_status(data.get("status") or DEFAULT_INITIAL_STATUS),
            error=data.get("error"),
            source_key=data.get("source_key"),
            created_at=data["created_at"],
            updated_at=data.get("updated_at") or data["created_at"],
            version=int(data.get("version") or 0),
        )


def serialize_changes(changes: dict[str, FieldChange]) -> dict[str, dict[str, Any]]:
    return {name: change.model_dump(mode="json") for name, change in changes.items()}


@dataclass(slots=True)
class DeliveryBaseline:
    """Último valor entregue com sucesso por (recipient, field_name)."""

    recipient: str
    field_name: str
    last_sent_value: Any
    last_sent_at: datetime
    expires_at: datetime

    @classmethod
    def sent(
        cls,
        recipient: str,
        field_name: str,
        value: Any,
        sent_at: datetime,
        ttl_days: int = DEFAULT_DELIVERY_BASELINE_TTL_DAYS,
    ) -> DeliveryBaseline:
        return cls(
            recipient=recipient,
            field_name=field_name,
            last_sent_value=value,
            last_sent_at=sent_at,
            expires_at=sent_at + timedelta(days=ttl_days),
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "field_name": self.field_name,
            "last_sent_value": self.last_sent_value,
            "last_sent_at": self.last_sent_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeliveryBaseline:
        return cls(
            recipient=data["recipient"],
            field_name=data["field_name"],
            last_sent_value=data.get("last_sent_value"),
            last_sent_at=data["last_sent_at"],
            expires_at=data["expires_at"],
        )


@dataclass(frozen=True, slots=True)
class ContactChangeAudit:
    """Registro append-only de um campo efetivamente enviado."""

    occurred_at: datetime
    recipient: str
    field_name: str
    strategy: UpdateStrategy
    new_destination_value: Any = None
    former_destination_value: Any = None
    former_source_value: Any = None
    new_source_value: Any = None
    source_key: str | None = None
    table_id: str | None = None
    record_id: str | None = None
    source_field_id: str | None = None
    is_self_service: bool = False
    provenance: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "occurred_at": self.occurred_at,
            "recipient": self.recipient,
            "field_name": self.field_name,
            "strategy": self.strategy.value,
            "new_destination_value": self.new_destination_value,
            "former_destination_value": self.former_destination_value,
            "former_source_value": self.former_source_value,
            "new_source_value": self.new_source_value,
            "source_key": self.source_key,
            "table_id": self.table_id,
            "record_id": self.record_id,
            "source_field_id": self.source_field_id,
            "is_self_service": self.is_self_service,
            "provenance": self.provenance,
            "request_id": self.request_id,
        }

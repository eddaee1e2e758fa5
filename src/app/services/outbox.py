"""Outbox: fila durável de mudanças destinadas a contatos.

Enfileirar é a única forma de criar envelopes; todo envelope nasce
queued. Re-enfileirar cria um NOVO envelope e preserva o original.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from app.domain.envelope import Envelope, FieldChange, Provenance, serialize_changes
from app.domain.recipient import normalize_email, require_recipient
from config.logging import mask_recipient
from fsm.states import REQUEUEABLE_STATUSES, EnvelopeStatus
from utils.errors import InvalidTransitionError, ValidationError

if TYPE_CHECKING:
    from app.protocols.outbox_store import OutboxStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_VIEW_LIMIT = 100


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Outbox:
    def __init__(
        self,
        store: OutboxStoreProtocol,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    async def enqueue(
        self,
        recipient: str | None,
        payload: Mapping[str, FieldChange | Mapping[str, Any]],
        provenance: Provenance | None = None,
        source_key: str | None = None,
    ) -> Envelope:
        """Cria um envelope queued.

        Raises:
            InvalidRecipientError: Se o e-mail for vazio após normalização.
            ValidationError: Se o payload for vazio ou inválido.
        """
        normalized = require_recipient(recipient)
        if not payload:
            raise ValidationError("Payload vazio não pode ser enfileirado")
        try:
            changes = {
                str(name): change if isinstance(change, FieldChange) else FieldChange.model_validate(change)
                for name, change in payload.items()
            }
        except ValueError as exc:
            raise ValidationError(f"Payload inválido: {exc}") from exc

        now = self._clock()
        envelope = Envelope(
            recipient=normalized,
            payload=serialize_changes(changes),
            provenance=provenance or Provenance(),
            source_key=source_key,
            created_at=now,
            updated_at=now,
        )
        stored = await self._store.add(envelope)
        logger.info(
            "envelope_enqueued",
            extra={
                "envelope_id": stored.id,
                "recipient": mask_recipient(normalized),
                "field_count": len(changes),
                "source_key": source_key,
            },
        )
        return stored

    async def get(self, envelope_id: str) -> Envelope | None:
        return await self._store.get(envelope_id)

    async def by_status(self, status: EnvelopeStatus, limit: int = DEFAULT_VIEW_LIMIT) -> list[Envelope]:
        return await self._store.find(status=status, limit=limit)

    async def queued(self, limit: int = DEFAULT_VIEW_LIMIT) -> list[Envelope]:
        return await self.by_status(EnvelopeStatus.QUEUED, limit)

    async def sent(self, limit: int = DEFAULT_VIEW_LIMIT) -> list[Envelope]:
        return await self.by_status(EnvelopeStatus.SENT, limit)

    async def failed(self, limit: int = DEFAULT_VIEW_LIMIT) -> list[Envelope]:
        return await self.by_status(EnvelopeStatus.FAILED, limit)

    async def for_recipient(
        self,
        email: str | None,
        *,
        status: EnvelopeStatus | None = None,
        limit: int | None = None,
    ) -> list[Envelope]:
        """Envelopes do destinatário (match exato do e-mail normalizado).

        Sem `limit` retorna todos; a API HTTP sempre passa um limite explícito.
        """
        normalized = normalize_email(email)
        if normalized is None:
            return []
        return await self._store.find(status=status, recipient=normalized, limit=limit)

    async def requeue(self, envelope_id: str) -> Envelope:
        """Cria um novo envelope queued a partir de um failed/partially_sent.

        Raises:
            KeyError: Se o envelope não existe.
            InvalidTransitionError: Se o status não permite re-enfileirar.
        """
        original = await self._store.get(envelope_id)
        if original is None:
            raise KeyError(envelope_id)
        if original.status not in REQUEUEABLE_STATUSES:
            raise InvalidTransitionError(
                f"Envelope {envelope_id} em {original.status} não pode ser re-enfileirado"
            )

        now = self._clock()
        envelope = Envelope(
            recipient=original.recipient,
            payload=dict(original.payload),
            provenance=replace(original.provenance, requeued_from=original.id),
            source_key=original.source_key,
            created_at=now,
            updated_at=now,
        )
        stored = await self._store.add(envelope)
        logger.info(
            "envelope_requeued",
            extra={"envelope_id": stored.id, "requeued_from": original.id},
        )
        return stored

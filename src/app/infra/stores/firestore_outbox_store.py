"""Firestore Outbox Store: fila durável de envelopes.

Estrutura no Firestore:
    {collection}/{envelope_id}

Toda escrita de status:
    1. valida a transição (fsm.require_transition)
    2. confere a versão lida
    3. grava com precondição last_update_time
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from google.api_core.exceptions import FailedPrecondition
from google.cloud.firestore import FieldFilter

from app.domain.envelope import Envelope
from app.infra.stores.firestore_errors import firestore_errors
from app.protocols.outbox_store import OutboxStoreProtocol
from fsm.manager import require_transition
from fsm.states import TERMINAL_STATUSES, EnvelopeStatus
from utils.errors import StaleEnvelopeError

if TYPE_CHECKING:
    from google.cloud.firestore import Client as FirestoreClient

logger = logging.getLogger(__name__)

OUTBOX_COLLECTION = "outbox_envelopes"


class FirestoreOutboxStore(OutboxStoreProtocol):
    """Outbox usando Firestore.

    Índices compostos necessários:
        status ASC, created_at ASC
        recipient ASC, created_at ASC
        status ASC, recipient ASC, created_at ASC
        status ASC, updated_at ASC
    """

    def __init__(
        self,
        firestore_client: FirestoreClient,
        collection_name: str = OUTBOX_COLLECTION,
    ) -> None:
        self._db = firestore_client
        self._collection = collection_name

    def _ref(self, envelope_id: str) -> Any:
        return self._db.collection(self._collection).document(envelope_id)

    async def add(self, envelope: Envelope) -> Envelope:
        return await asyncio.to_thread(self._add_sync, envelope)

    def _add_sync(self, envelope: Envelope) -> Envelope:
        with firestore_errors("add", self._collection):
            self._ref(envelope.id).create(envelope.to_dict())
        return envelope

    async def get(self, envelope_id: str) -> Envelope | None:
        return await asyncio.to_thread(self._get_sync, envelope_id)

    def _get_sync(self, envelope_id: str) -> Envelope | None:
        with firestore_errors("get", self._collection):
            snapshot = self._ref(envelope_id).get()
        if not snapshot.exists:
            return None
        return Envelope.from_dict(snapshot.to_dict())

    async def find(
        self,
        *,
        status: EnvelopeStatus | None = None,
        recipient: str | None = None,
        limit: int | None = 100,
    ) -> list[Envelope]:
        return await asyncio.to_thread(self._find_sync, status, recipient, limit)

    def _find_sync(
        self,
        status: EnvelopeStatus | None,
        recipient: str | None,
        limit: int | None,
    ) -> list[Envelope]:
        query: Any = self._db.collection(self._collection)
        if status is not None:
            query = query.where(filter=FieldFilter("status", "==", status.value))
        if recipient is not None:
            query = query.where(filter=FieldFilter("recipient", "==", recipient))
        with firestore_errors("find", self._collection):
            query = query.order_by("created_at")
            if limit is not None:
                query = query.limit(limit)
            docs = query.stream()
            return [Envelope.from_dict(doc.to_dict()) for doc in docs]

    async def claim_queued(self, limit: int, now: datetime) -> list[Envelope]:
        return await asyncio.to_thread(self._claim_queued_sync, limit, now)

    def _claim_queued_sync(self, limit: int, now: datetime) -> list[Envelope]:
        claimed: list[Envelope] = []
        with firestore_errors("claim_queued", self._collection):
            docs = (
                self._db.collection(self._collection)
                .where(filter=FieldFilter("status", "==", EnvelopeStatus.QUEUED.value))
                .order_by("created_at")
                .limit(limit)
                .stream()
            )
            for doc in docs:
                envelope = Envelope.from_dict(doc.to_dict())
                try:
                    claimed.append(
                        self._write_status(
                            envelope,
                            doc.update_time,
                            EnvelopeStatus.DISPATCHING,
                            "dispatcher_claim",
                            None,
                            now,
                        )
                    )
                except StaleEnvelopeError:
                    logger.debug("envelope_claim_lost", extra={"envelope_id": envelope.id})
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
        return await asyncio.to_thread(
            self._transition_sync, envelope, target, trigger, error, now
        )

    def _transition_sync(
        self,
        envelope: Envelope,
        target: EnvelopeStatus,
        trigger: str,
        error: dict[str, Any] | None,
        now: datetime | None,
    ) -> Envelope:
        with firestore_errors("transition", self._collection):
            snapshot = self._ref(envelope.id).get()
            if not snapshot.exists:
                raise KeyError(envelope.id)
            current = Envelope.from_dict(snapshot.to_dict())
            if current.version != envelope.version:
                raise StaleEnvelopeError(f"Envelope alterado: {envelope.id}")
            return self._write_status(current, snapshot.update_time, target, trigger, error, now)

    def _write_status(
        self,
        current: Envelope,
        update_time: Any,
        target: EnvelopeStatus,
        trigger: str,
        error: dict[str, Any] | None,
        now: datetime | None,
    ) -> Envelope:
        transition = require_transition(current.id, current.status, target, trigger)
        updated = current.with_status(target, error=error, now=now or datetime.now(UTC))
        try:
            self._ref(current.id).update(
                {
                    "status": updated.status.value,
                    "error": updated.error,
                    "updated_at": updated.updated_at,
                    "version": updated.version,
                },
                option=self._db.write_option(last_update_time=update_time),
            )
        except FailedPrecondition as exc:
            raise StaleEnvelopeError(f"Envelope alterado: {current.id}") from exc
        logger.debug("envelope_status_changed", extra=transition.to_log_dict())
        return updated

    async def delete_terminal_before(self, older_than: datetime, limit: int) -> int:
        return await asyncio.to_thread(self._delete_terminal_before_sync, older_than, limit)

    def _delete_terminal_before_sync(self, older_than: datetime, limit: int) -> int:
        terminal = sorted(status.value for status in TERMINAL_STATUSES)
        with firestore_errors("delete_terminal_before", self._collection):
            docs = list(
                self._db.collection(self._collection)
                .where(filter=FieldFilter("status", "in", terminal))
                .where(filter=FieldFilter("updated_at", "<", older_than))
                .limit(limit)
                .stream()
            )
            if not docs:
                return 0
            batch = self._db.batch()
            for doc in docs:
                batch.delete(doc.reference)
            batch.commit()
        return len(docs)

    async def release_stale_claims(self, older_than: datetime, limit: int, now: datetime) -> int:
        return await asyncio.to_thread(self._release_stale_claims_sync, older_than, limit, now)

    def _release_stale_claims_sync(self, older_than: datetime, limit: int, now: datetime) -> int:
        released = 0
        with firestore_errors("release_stale_claims", self._collection):
            docs = (
                self._db.collection(self._collection)
                .where(filter=FieldFilter("status", "==", EnvelopeStatus.DISPATCHING.value))
                .where(filter=FieldFilter("updated_at", "<", older_than))
                .limit(limit)
                .stream()
            )
            for doc in docs:
                envelope = Envelope.from_dict(doc.to_dict())
                try:
                    self._write_status(
                        envelope,
                        doc.update_time,
                        EnvelopeStatus.QUEUED,
                        "claim_lease_expired",
                        None,
                        now,
                    )
                except StaleEnvelopeError:
                    logger.debug("envelope_release_lost", extra={"envelope_id": envelope.id})
                    continue
                released += 1
        return released

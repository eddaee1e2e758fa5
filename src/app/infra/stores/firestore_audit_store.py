"""Firestore stores de entrega: baselines de entrega e auditoria.

Estrutura no Firestore:
    {delivery_collection}/{sha256(recipient, field_name)}
    {audit_collection}/{auto_id}   (append-only)

Auditoria não contém payload bruto do destino; apenas os valores
do campo efetivamente enviado.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from google.cloud.firestore import FieldFilter, Query

from app.domain.envelope import ContactChangeAudit, DeliveryBaseline, UpdateStrategy
from app.infra.stores.firestore_errors import firestore_errors
from app.protocols.delivery_store import (
    ContactAuditStoreProtocol,
    DeliveryBaselineStoreProtocol,
)

if TYPE_CHECKING:
    from google.cloud.firestore import Client as FirestoreClient

logger = logging.getLogger(__name__)

DELIVERY_BASELINES_COLLECTION = "delivery_baselines"
AUDIT_COLLECTION = "contact_change_audits"

# Limite de escritas por batch do Firestore
MAX_BATCH_WRITES = 500


def delivery_doc_id(recipient: str, field_name: str) -> str:
    raw = f"{recipient}\x1f{field_name}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class FirestoreDeliveryBaselineStore(DeliveryBaselineStoreProtocol):
    def __init__(
        self,
        firestore_client: FirestoreClient,
        collection_name: str = DELIVERY_BASELINES_COLLECTION,
    ) -> None:
        self._db = firestore_client
        self._collection = collection_name

    async def get_many(
        self,
        recipient: str,
        field_names: Iterable[str],
    ) -> dict[str, DeliveryBaseline]:
        return await asyncio.to_thread(self._get_many_sync, recipient, list(field_names))

    def _get_many_sync(self, recipient: str, field_names: list[str]) -> dict[str, DeliveryBaseline]:
        if not field_names:
            return {}
        collection = self._db.collection(self._collection)
        refs = [collection.document(delivery_doc_id(recipient, name)) for name in field_names]
        with firestore_errors("get_many", self._collection):
            snapshots = list(self._db.get_all(refs))
        found: dict[str, DeliveryBaseline] = {}
        for snapshot in snapshots:
            if snapshot.exists:
                baseline = DeliveryBaseline.from_dict(snapshot.to_dict())
                found[baseline.field_name] = baseline
        return found

    async def exists_for(self, recipient: str) -> bool:
        return await asyncio.to_thread(self._exists_for_sync, recipient)

    def _exists_for_sync(self, recipient: str) -> bool:
        with firestore_errors("exists_for", self._collection):
            docs = list(
                self._db.collection(self._collection)
                .where(filter=FieldFilter("recipient", "==", recipient))
                .limit(1)
                .stream()
            )
        return bool(docs)

    async def upsert_many(self, baselines: Iterable[DeliveryBaseline]) -> None:
        await asyncio.to_thread(self._upsert_many_sync, list(baselines))

    def _upsert_many_sync(self, baselines: list[DeliveryBaseline]) -> None:
        collection = self._db.collection(self._collection)
        with firestore_errors("upsert_many", self._collection):
            for start in range(0, len(baselines), MAX_BATCH_WRITES):
                batch = self._db.batch()
                for baseline in baselines[start:start + MAX_BATCH_WRITES]:
                    ref = collection.document(delivery_doc_id(baseline.recipient, baseline.field_name))
                    batch.set(ref, baseline.to_dict())
                batch.commit()

    async def delete_expired(self, now: datetime, limit: int) -> int:
        return await asyncio.to_thread(self._delete_expired_sync, now, limit)

    def _delete_expired_sync(self, now: datetime, limit: int) -> int:
        with firestore_errors("delete_expired", self._collection):
            docs = list(
                self._db.collection(self._collection)
                .where(filter=FieldFilter("expires_at", "<=", now))
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


class FirestoreContactAuditStore(ContactAuditStoreProtocol):
    """Trilha de auditoria append-only (sem updates)."""

    def __init__(
        self,
        firestore_client: FirestoreClient,
        collection_name: str = AUDIT_COLLECTION,
    ) -> None:
        self._db = firestore_client
        self._collection = collection_name

    async def append_many(self, audits: Iterable[ContactChangeAudit]) -> None:
        await asyncio.to_thread(self._append_many_sync, list(audits))

    def _append_many_sync(self, audits: list[ContactChangeAudit]) -> None:
        if not audits:
            return
        collection = self._db.collection(self._collection)
        with firestore_errors("append_many", self._collection):
            for start in range(0, len(audits), MAX_BATCH_WRITES):
                batch = self._db.batch()
                for audit in audits[start:start + MAX_BATCH_WRITES]:
                    batch.set(collection.document(), audit.to_dict())
                batch.commit()
        logger.debug("contact_audits_appended", extra={"count": len(audits)})

    async def list_for_recipient(self, recipient: str, limit: int = 100) -> list[ContactChangeAudit]:
        return await asyncio.to_thread(self._list_for_recipient_sync, recipient, limit)

    def _list_for_recipient_sync(self, recipient: str, limit: int) -> list[ContactChangeAudit]:
        with firestore_errors("list_for_recipient", self._collection):
            docs = (
                self._db.collection(self._collection)
                .where(filter=FieldFilter("recipient", "==", recipient))
                .order_by("occurred_at", direction=Query.DESCENDING)
                .limit(limit)
                .stream()
            )
            return [_audit_from_dict(doc.to_dict()) for doc in docs]


def _audit_from_dict(data: dict) -> ContactChangeAudit:
    return ContactChangeAudit(
        occurred_at=data["occurred_at"],
        recipient=data["recipient"],
        field_name=data["field_name"],
        strategy=UpdateStrategy(data.get("strategy") or UpdateStrategy.UPSERT),
        new_destination_value=data.get("new_destination_value"),
        former_destination_value=data.get("former_destination_value"),
        former_source_value=data.get("former_source_value"),
        new_source_value=data.get("new_source_value"),
        source_key=data.get("source_key"),
        table_id=data.get("table_id"),
        record_id=data.get("record_id"),
        source_field_id=data.get("source_field_id"),
        is_self_service=bool(data.get("is_self_service")),
        provenance=dict(data.get("provenance") or {}),
        request_id=data.get("request_id"),
    )

"""Firestore Baseline Store: últimos valores conhecidos por campo.

Estrutura no Firestore:
    {collection}/{sha256(source_key, row_id, field_id)}

Criação via create() (falha se já existe) e troca condicional via
versão + precondição last_update_time.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from google.api_core.exceptions import Conflict, FailedPrecondition
from google.cloud.firestore import FieldFilter

from app.domain.baseline import Baseline, baseline_doc_id
from app.infra.stores.firestore_errors import firestore_errors
from app.protocols.baseline_store import BaselineStoreProtocol
from utils.errors import StaleBaselineError

if TYPE_CHECKING:
    from google.cloud.firestore import Client as FirestoreClient

logger = logging.getLogger(__name__)

BASELINES_COLLECTION = "field_value_baselines"


class FirestoreBaselineStore(BaselineStoreProtocol):
    def __init__(
        self,
        firestore_client: FirestoreClient,
        collection_name: str = BASELINES_COLLECTION,
    ) -> None:
        self._db = firestore_client
        self._collection = collection_name

    def _ref(self, doc_id: str) -> Any:
        return self._db.collection(self._collection).document(doc_id)

    async def get(self, source_key: str, row_id: str, field_id: str) -> Baseline | None:
        return await asyncio.to_thread(self._get_sync, source_key, row_id, field_id)

    def _get_sync(self, source_key: str, row_id: str, field_id: str) -> Baseline | None:
        with firestore_errors("get", self._collection):
            snapshot = self._ref(baseline_doc_id(source_key, row_id, field_id)).get()
        if not snapshot.exists:
            return None
        return Baseline.from_dict(snapshot.to_dict())

    async def insert(self, baseline: Baseline) -> Baseline:
        return await asyncio.to_thread(self._insert_sync, baseline)

    def _insert_sync(self, baseline: Baseline) -> Baseline:
        data = {**baseline.to_dict(), "version": 0}
        with firestore_errors("insert", self._collection):
            try:
                self._ref(baseline.doc_id).create(data)
            except Conflict as exc:
                raise StaleBaselineError(f"Baseline já existe: {baseline.doc_id}") from exc
        return Baseline.from_dict(data)

    async def compare_and_swap(self, baseline: Baseline, expected_version: int) -> Baseline:
        return await asyncio.to_thread(self._compare_and_swap_sync, baseline, expected_version)

    def _compare_and_swap_sync(self, baseline: Baseline, expected_version: int) -> Baseline:
        ref = self._ref(baseline.doc_id)
        data = {**baseline.to_dict(), "version": expected_version + 1}
        with firestore_errors("compare_and_swap", self._collection):
            snapshot = ref.get()
            if not snapshot.exists or snapshot.get("version") != expected_version:
                raise StaleBaselineError(f"Baseline alterada: {baseline.doc_id}")
            try:
                ref.update(
                    data,
                    option=self._db.write_option(last_update_time=snapshot.update_time),
                )
            except FailedPrecondition as exc:
                raise StaleBaselineError(f"Baseline alterada: {baseline.doc_id}") from exc
        return Baseline.from_dict(data)

    async def delete_checked_before(self, older_than: datetime, limit: int) -> int:
        return await asyncio.to_thread(self._delete_checked_before_sync, older_than, limit)

    def _delete_checked_before_sync(self, older_than: datetime, limit: int) -> int:
        with firestore_errors("delete_checked_before", self._collection):
            docs = list(
                self._db.collection(self._collection)
                .where(filter=FieldFilter("last_checked_at", "<", older_than))
                .limit(limit)
                .stream()
            )
            if not docs:
                return 0
            batch = self._db.batch()
            for doc in docs:
                batch.delete(doc.reference)
            batch.commit()
        logger.debug("baselines_deleted", extra={"count": len(docs)})
        return len(docs)

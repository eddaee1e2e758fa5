"""Firestore Source Store: origens consultadas por polling.

Estrutura no Firestore:
    {collection}/{source_type}:{source_id}

A reserva (compare_and_set_next_poll) usa precondição
last_update_time: só um enfileirador vence a troca.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from google.api_core.exceptions import FailedPrecondition, NotFound
from google.cloud.firestore import FieldFilter

from app.domain.source import Source
from app.infra.stores.firestore_errors import firestore_errors
from app.protocols.source_store import SourceStoreProtocol

if TYPE_CHECKING:
    from google.cloud.firestore import Client as FirestoreClient

logger = logging.getLogger(__name__)

SOURCES_COLLECTION = "sync_sources"


class FirestoreSourceStore(SourceStoreProtocol):
    """Store de origens usando Firestore.

    Args:
        firestore_client: Cliente Firestore
        collection_name: Nome da collection
    """

    def __init__(
        self,
        firestore_client: FirestoreClient,
        collection_name: str = SOURCES_COLLECTION,
    ) -> None:
        self._db = firestore_client
        self._collection = collection_name

    def _ref(self, key: str) -> Any:
        return self._db.collection(self._collection).document(key)

    async def get(self, key: str) -> Source | None:
        return await asyncio.to_thread(self._get_sync, key)

    def _get_sync(self, key: str) -> Source | None:
        with firestore_errors("get", self._collection):
            snapshot = self._ref(key).get()
        if not snapshot.exists:
            return None
        return Source.from_dict(snapshot.to_dict())

    async def save(self, source: Source) -> None:
        await asyncio.to_thread(self._save_sync, source)

    def _save_sync(self, source: Source) -> None:
        with firestore_errors("save", self._collection):
            self._ref(source.key).set(source.to_dict())

    async def update(self, key: str, changes: dict[str, Any]) -> None:
        await asyncio.to_thread(self._update_sync, key, changes)

    def _update_sync(self, key: str, changes: dict[str, Any]) -> None:
        with firestore_errors("update", self._collection):
            try:
                self._ref(key).update(changes)
            except NotFound as exc:
                raise KeyError(key) from exc

    async def list_due(self, now: datetime, limit: int) -> list[Source]:
        return await asyncio.to_thread(self._list_due_sync, now, limit)

    def _list_due_sync(self, now: datetime, limit: int) -> list[Source]:
        with firestore_errors("list_due", self._collection):
            docs = (
                self._db.collection(self._collection)
                .where(filter=FieldFilter("next_poll_at", "<=", now))
                .order_by("next_poll_at")
                .limit(limit)
                .stream()
            )
            return [Source.from_dict(doc.to_dict()) for doc in docs]

    async def compare_and_set_next_poll(
        self,
        key: str,
        expected: datetime,
        new: datetime,
    ) -> bool:
        return await asyncio.to_thread(self._compare_and_set_sync, key, expected, new)

    def _compare_and_set_sync(self, key: str, expected: datetime, new: datetime) -> bool:
        ref = self._ref(key)
        with firestore_errors("compare_and_set_next_poll", self._collection):
            snapshot = ref.get()
            if not snapshot.exists or snapshot.get("next_poll_at") != expected:
                return False
            try:
                ref.update(
                    {"next_poll_at": new},
                    option=self._db.write_option(last_update_time=snapshot.update_time),
                )
            except FailedPrecondition:
                logger.debug("source_cas_precondition_failed", extra={"source_key": key})
                return False
        return True

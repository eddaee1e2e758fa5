"""Firestore Ignore Rule Store.

Estrutura no Firestore:
    {collection}/{sha256(source_type, pattern)}

O ID determinístico garante unicidade de (source_type, pattern):
create() falha se a regra já existe.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import TYPE_CHECKING

from google.api_core.exceptions import Conflict
from google.cloud.firestore import FieldFilter

from app.domain.ignore_rule import IgnoreRule
from app.domain.source import SourceType
from app.infra.stores.firestore_errors import firestore_errors
from app.protocols.ignore_rule_store import IgnoreRuleStoreProtocol
from utils.errors import DuplicateIgnoreRuleError

if TYPE_CHECKING:
    from google.cloud.firestore import Client as FirestoreClient

IGNORE_RULES_COLLECTION = "sync_source_ignores"


def ignore_rule_doc_id(source_type: SourceType, pattern: str) -> str:
    raw = f"{source_type.value}\x1f{pattern}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class FirestoreIgnoreRuleStore(IgnoreRuleStoreProtocol):
    def __init__(
        self,
        firestore_client: FirestoreClient,
        collection_name: str = IGNORE_RULES_COLLECTION,
    ) -> None:
        self._db = firestore_client
        self._collection = collection_name

    async def add(self, rule: IgnoreRule) -> IgnoreRule:
        return await asyncio.to_thread(self._add_sync, rule)

    def _add_sync(self, rule: IgnoreRule) -> IgnoreRule:
        ref = self._db.collection(self._collection).document(
            ignore_rule_doc_id(rule.source_type, rule.pattern)
        )
        with firestore_errors("add", self._collection):
            try:
                ref.create(rule.to_dict())
            except Conflict as exc:
                raise DuplicateIgnoreRuleError(
                    "Regra de ignore duplicada",
                    details={"source_type": rule.source_type.value},
                ) from exc
        return rule

    async def list_for(self, source_type: SourceType) -> list[IgnoreRule]:
        return await asyncio.to_thread(self._list_for_sync, source_type)

    def _list_for_sync(self, source_type: SourceType) -> list[IgnoreRule]:
        with firestore_errors("list_for", self._collection):
            docs = (
                self._db.collection(self._collection)
                .where(filter=FieldFilter("source_type", "==", source_type.value))
                .order_by("created_at")
                .stream()
            )
            return [IgnoreRule.from_dict(doc.to_dict()) for doc in docs]

    async def remove(self, rule_id: str) -> bool:
        return await asyncio.to_thread(self._remove_sync, rule_id)

    def _remove_sync(self, rule_id: str) -> bool:
        with firestore_errors("remove", self._collection):
            docs = list(
                self._db.collection(self._collection)
                .where(filter=FieldFilter("id", "==", rule_id))
                .limit(1)
                .stream()
            )
            if not docs:
                return False
            docs[0].reference.delete()
        return True

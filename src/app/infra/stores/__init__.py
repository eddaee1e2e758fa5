"""Stores — implementações concretas de persistência.

Módulos disponíveis:
    - redis_rate_limit_store: Janela deslizante do rate limiter (Redis + Lua)
    - firestore_source_store: Origens consultadas por polling
    - firestore_baseline_store: Baselines de valores de campo
    - firestore_outbox_store: Envelopes da outbox
    - firestore_audit_store: Baselines de entrega e auditoria de contato
    - firestore_ignore_rule_store: Regras de ignore
    - memory_stores: Stores em memória para desenvolvimento/testes
"""

from __future__ import annotations

from app.infra.stores.firestore_audit_store import (
    FirestoreContactAuditStore,
    FirestoreDeliveryBaselineStore,
)
from app.infra.stores.firestore_baseline_store import FirestoreBaselineStore
from app.infra.stores.firestore_ignore_rule_store import FirestoreIgnoreRuleStore
from app.infra.stores.firestore_outbox_store import FirestoreOutboxStore
from app.infra.stores.firestore_source_store import FirestoreSourceStore
from app.infra.stores.memory_stores import (
    MemoryBaselineStore,
    MemoryContactAuditStore,
    MemoryDeliveryBaselineStore,
    MemoryIgnoreRuleStore,
    MemoryOutboxStore,
    MemoryRateLimitStore,
    MemorySourceStore,
)
from app.infra.stores.redis_rate_limit_store import RedisRateLimitStore

__all__ = [
    # Firestore
    "FirestoreBaselineStore",
    "FirestoreContactAuditStore",
    "FirestoreDeliveryBaselineStore",
    "FirestoreIgnoreRuleStore",
    "FirestoreOutboxStore",
    "FirestoreSourceStore",
    # Memory (dev/test)
    "MemoryBaselineStore",
    "MemoryContactAuditStore",
    "MemoryDeliveryBaselineStore",
    "MemoryIgnoreRuleStore",
    "MemoryOutboxStore",
    "MemoryRateLimitStore",
    "MemorySourceStore",
    # Redis
    "RedisRateLimitStore",
]

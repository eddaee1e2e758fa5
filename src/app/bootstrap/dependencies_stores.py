"""Factories de stores: criação de implementações concretas.

Os stores de domínio compartilham STORE_BACKEND (memory|firestore);
o estado do rate limiter usa RATE_LIMIT_BACKEND (memory|redis).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.bootstrap.clients import create_async_redis_client, create_firestore_client
from app.infra.stores import (
    FirestoreBaselineStore,
    FirestoreContactAuditStore,
    FirestoreDeliveryBaselineStore,
    FirestoreIgnoreRuleStore,
    FirestoreOutboxStore,
    FirestoreSourceStore,
    MemoryBaselineStore,
    MemoryContactAuditStore,
    MemoryDeliveryBaselineStore,
    MemoryIgnoreRuleStore,
    MemoryOutboxStore,
    MemoryRateLimitStore,
    MemorySourceStore,
    RedisRateLimitStore,
)
from config.settings import (
    get_base_settings,
    get_firestore_settings,
    get_rate_limit_settings,
    get_store_settings,
)

if TYPE_CHECKING:
    from app.protocols import (
        BaselineStoreProtocol,
        ContactAuditStoreProtocol,
        DeliveryBaselineStoreProtocol,
        IgnoreRuleStoreProtocol,
        OutboxStoreProtocol,
        RateLimitStoreProtocol,
        SourceStoreProtocol,
    )

logger = logging.getLogger(__name__)


def _store_backend(store_name: str) -> str:
    """Backend configurado; alerta quando memória é usada fora de dev."""
    backend = get_store_settings().backend
    if backend == "memory":
        base = get_base_settings()
        if not base.is_development:
            logger.warning(
                "memory_store_in_non_dev",
                extra={
                    "store": store_name,
                    "backend": "memory",
                    "environment": base.environment,
                },
            )
    elif backend != "firestore":
        msg = f"STORE_BACKEND inválido: {backend}"
        raise ValueError(msg)
    logger.info(f"{store_name}_created", extra={"backend": backend})
    return backend


# ──────────────────────────────────────────────────────────────────────────────
# Domain Store Factories
# ──────────────────────────────────────────────────────────────────────────────


def create_source_store() -> SourceStoreProtocol:
    if _store_backend("source_store") == "firestore":
        return FirestoreSourceStore(
            create_firestore_client(), get_firestore_settings().collection_sources
        )
    return MemorySourceStore()


def create_baseline_store() -> BaselineStoreProtocol:
    if _store_backend("baseline_store") == "firestore":
        return FirestoreBaselineStore(
            create_firestore_client(), get_firestore_settings().collection_baselines
        )
    return MemoryBaselineStore()


def create_outbox_store() -> OutboxStoreProtocol:
    if _store_backend("outbox_store") == "firestore":
        return FirestoreOutboxStore(
            create_firestore_client(), get_firestore_settings().collection_envelopes
        )
    return MemoryOutboxStore()


def create_delivery_baseline_store() -> DeliveryBaselineStoreProtocol:
    if _store_backend("delivery_baseline_store") == "firestore":
        return FirestoreDeliveryBaselineStore(
            create_firestore_client(), get_firestore_settings().collection_delivery_baselines
        )
    return MemoryDeliveryBaselineStore()


def create_contact_audit_store() -> ContactAuditStoreProtocol:
    if _store_backend("contact_audit_store") == "firestore":
        return FirestoreContactAuditStore(
            create_firestore_client(), get_firestore_settings().collection_audit
        )
    return MemoryContactAuditStore()


def create_ignore_rule_store() -> IgnoreRuleStoreProtocol:
    if _store_backend("ignore_rule_store") == "firestore":
        return FirestoreIgnoreRuleStore(
            create_firestore_client(), get_firestore_settings().collection_ignore_rules
        )
    return MemoryIgnoreRuleStore()


# ──────────────────────────────────────────────────────────────────────────────
# Rate Limit Store Factory
# ──────────────────────────────────────────────────────────────────────────────


def create_rate_limit_store() -> RateLimitStoreProtocol:
    """Cria store da janela deslizante baseado em RATE_LIMIT_BACKEND.

    - "memory": MemoryRateLimitStore (processo único, dev/test)
    - "redis": RedisRateLimitStore (limite global entre processos)
    """
    backend = get_rate_limit_settings().backend

    if backend == "redis":
        store: RateLimitStoreProtocol = RedisRateLimitStore(create_async_redis_client())
        logger.info("rate_limit_store_created", extra={"backend": "redis"})
        return store

    if backend == "memory":
        environment = get_base_settings().environment
        if environment not in ("development", "test"):
            logger.warning(
                "memory_store_in_non_dev",
                extra={
                    "store": "rate_limit_store",
                    "backend": "memory",
                    "environment": environment,
                },
            )
        logger.info("rate_limit_store_created", extra={"backend": "memory"})
        return MemoryRateLimitStore()

    msg = f"RATE_LIMIT_BACKEND inválido: {backend}"
    raise ValueError(msg)

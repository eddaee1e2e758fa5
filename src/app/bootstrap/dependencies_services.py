"""Factories de serviços e use cases do pipeline.

Cada factory recebe os stores já criados; os clientes externos
(adaptador de origem e cliente de destino) são injetados pelo chamador.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.services.change_detector import ChangeDetector
from app.services.consistency_verifier import ConsistencyVerifier
from app.services.dispatcher import OutboxDispatcher
from app.services.outbox import Outbox
from app.services.poll_scheduler import PollScheduler
from app.services.pruning import PruneService
from app.services.rate_limiter import RateLimiterRegistry
from app.use_cases.sync import (
    DiscoverSourcesUseCase,
    EnqueueDueSourcesUseCase,
    PollSourceUseCase,
)
from config.settings import (
    get_change_detection_settings,
    get_ignore_settings,
    get_outbox_settings,
    get_polling_settings,
    get_rate_limit_settings,
    get_verifier_settings,
)

if TYPE_CHECKING:
    from app.protocols import (
        BaselineStoreProtocol,
        ContactAuditStoreProtocol,
        DeliveryBaselineStoreProtocol,
        DestinationClientProtocol,
        IgnoreRuleStoreProtocol,
        OutboxStoreProtocol,
        RateLimitStoreProtocol,
        SourceAdapterProtocol,
        SourceStoreProtocol,
    )
    from app.use_cases.sync.enqueue_due_sources import PollCallback

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Services
# ──────────────────────────────────────────────────────────────────────────────


def create_rate_limiter_registry(store: RateLimitStoreProtocol) -> RateLimiterRegistry:
    """Registry com o bucket global do destino já registrado.

    Buckets por origem são registrados sob demanda pelo poll.
    """
    settings = get_rate_limit_settings()
    registry = RateLimiterRegistry(store)
    registry.register(
        settings.destination_bucket,
        settings.destination_limit,
        settings.destination_period,
    )
    logger.info("rate_limiter_registry_created", extra={"buckets": registry.buckets})
    return registry


def create_poll_scheduler(store: SourceStoreProtocol) -> PollScheduler:
    return PollScheduler(store, max_backoff=get_polling_settings().max_backoff_seconds)


def create_change_detector(store: BaselineStoreProtocol) -> ChangeDetector:
    return ChangeDetector(store, track_checks=get_change_detection_settings().track_checks)


def create_outbox(store: OutboxStoreProtocol) -> Outbox:
    return Outbox(store)


def create_dispatcher(
    store: OutboxStoreProtocol,
    destination: DestinationClientProtocol,
    rate_limiter: RateLimiterRegistry,
    delivery_baselines: DeliveryBaselineStoreProtocol,
    audits: ContactAuditStoreProtocol,
) -> OutboxDispatcher:
    outbox_settings = get_outbox_settings()
    return OutboxDispatcher(
        store,
        destination,
        rate_limiter,
        delivery_baselines=delivery_baselines,
        audits=audits,
        bucket=get_rate_limit_settings().destination_bucket,
        delivery_baseline_ttl_days=outbox_settings.delivery_baseline_ttl_days,
        claim_lease_seconds=outbox_settings.claim_lease_seconds,
        new_contact_user_group=outbox_settings.new_contact_user_group or None,
    )


def create_consistency_verifier() -> ConsistencyVerifier:
    settings = get_verifier_settings()
    return ConsistencyVerifier(
        runs=settings.runs,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay_seconds,
    )


def create_prune_service(
    change_detector: ChangeDetector,
    outbox_store: OutboxStoreProtocol,
    delivery_baselines: DeliveryBaselineStoreProtocol,
) -> PruneService:
    change_settings = get_change_detection_settings()
    return PruneService(
        change_detector,
        outbox_store,
        delivery_baselines,
        baseline_retention_days=change_settings.baseline_retention_days,
        outbox_retention_days=get_outbox_settings().retention_days,
        batch_size=change_settings.prune_batch_size,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Use Cases
# ──────────────────────────────────────────────────────────────────────────────


def create_enqueue_due_sources_use_case(
    scheduler: PollScheduler,
    on_reserved: PollCallback,
) -> EnqueueDueSourcesUseCase:
    return EnqueueDueSourcesUseCase(
        scheduler,
        on_reserved,
        batch_size=get_polling_settings().enqueue_batch_size,
    )


def create_poll_source_use_case(
    sources: SourceStoreProtocol,
    scheduler: PollScheduler,
    adapter: SourceAdapterProtocol,
    change_detector: ChangeDetector,
    outbox: Outbox,
    rate_limiter: RateLimiterRegistry,
) -> PollSourceUseCase:
    return PollSourceUseCase(
        sources,
        scheduler,
        adapter,
        change_detector,
        outbox,
        rate_limiter,
        get_rate_limit_settings(),
    )


def create_discover_sources_use_case(
    sources: SourceStoreProtocol,
    ignore_rules: IgnoreRuleStoreProtocol,
) -> DiscoverSourcesUseCase:
    return DiscoverSourcesUseCase(
        sources,
        ignore_rules,
        get_polling_settings(),
        get_ignore_settings(),
    )

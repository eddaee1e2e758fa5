"""Serviços de aplicação.

Unidades reutilizáveis de orquestração (sem IO direto).
Implementações concretas de IO ficam em app/infra/.
"""

from app.services.change_detector import ChangeDetector, ChangeResult
from app.services.consistency_verifier import ConsistencyVerifier
from app.services.dispatcher import DispatchSummary, OutboxDispatcher
from app.services.ignore_matcher import IgnoreMatcher
from app.services.outbox import Outbox
from app.services.poll_scheduler import PollScheduler
from app.services.pruning import PruneReport, PruneService
from app.services.rate_limiter import RateLimiter, RateLimiterRegistry

__all__ = [
    "ChangeDetector",
    "ChangeResult",
    "ConsistencyVerifier",
    "DispatchSummary",
    "IgnoreMatcher",
    "Outbox",
    "OutboxDispatcher",
    "PollScheduler",
    "PruneReport",
    "PruneService",
    "RateLimiter",
    "RateLimiterRegistry",
]

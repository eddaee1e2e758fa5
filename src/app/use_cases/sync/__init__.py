"""Use cases do pipeline de sincronização."""

from .discover_sources import DiscoverSourcesUseCase, DiscoveryResult
from .enqueue_due_sources import EnqueueDueSourcesUseCase, EnqueueResult
from .poll_source import PollResult, PollSourceUseCase

__all__ = [
    "DiscoverSourcesUseCase",
    "DiscoveryResult",
    "EnqueueDueSourcesUseCase",
    "EnqueueResult",
    "PollResult",
    "PollSourceUseCase",
]

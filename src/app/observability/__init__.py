"""Observabilidade — correlation_id por execução e métricas via logs.

Uso:
    from app.observability import correlation_scope, record_latency
"""

from app.observability.correlation import (
    correlation_scope,
    generate_correlation_id,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from app.observability.metrics import (
    record_change_detected,
    record_dispatch_outcome,
    record_latency,
    record_rate_limit_wait,
)

__all__ = [
    "correlation_scope",
    "generate_correlation_id",
    "get_correlation_id",
    "record_change_detected",
    "record_dispatch_outcome",
    "record_latency",
    "record_rate_limit_wait",
    "reset_correlation_id",
    "set_correlation_id",
]

"""Registro de métricas via structured logging.

As métricas são registradas como logs estruturados e agregadas
posteriormente (ex.: Cloud Logging → BigQuery).

Métricas suportadas:
- Latência: tempo de execução por componente/operação
- Espera no rate limiter: tempo dormido por bucket
- Resultado de dispatch: contador por status final do envelope
- Mudança detectada: contador por origem

Nunca registrar valores de campo ou e-mails em métricas.
"""

from __future__ import annotations

import logging

from app.observability.correlation import get_correlation_id

logger = logging.getLogger(__name__)


def record_latency(
    component: str,
    operation: str,
    latency_ms: float,
    correlation_id: str | None = None,
) -> None:
    """Registra latência de operação.

    Args:
        component: Nome do componente (ex: "poll_source", "dispatcher")
        operation: Nome da operação (ex: "fetch_rows", "drain")
        latency_ms: Latência em milissegundos
        correlation_id: ID de correlação (padrão: do contexto)
    """
    logger.info(
        "metric_latency",
        extra={
            "metric_type": "latency",
            "component": component,
            "operation": operation,
            "latency_ms": round(latency_ms, 2),
            "correlation_id": correlation_id or get_correlation_id(),
        },
    )


def record_rate_limit_wait(bucket: str, wait_seconds: float, attempt: int) -> None:
    """Registra uma espera imposta pelo rate limiter."""
    logger.debug(
        "metric_rate_limit_wait",
        extra={
            "metric_type": "rate_limit_wait",
            "component": "rate_limiter",
            "bucket": bucket,
            "wait_ms": round(wait_seconds * 1000, 2),
            "attempt": attempt,
        },
    )


def record_dispatch_outcome(
    status: str,
    envelope_count: int,
    field_count: int = 0,
    correlation_id: str | None = None,
) -> None:
    """Registra o resultado do dispatch de um grupo de envelopes.

    Args:
        status: Status terminal aplicado (ex: "sent", "failed")
        envelope_count: Envelopes no grupo
        field_count: Campos efetivamente enviados
    """
    logger.info(
        "metric_dispatch_outcome",
        extra={
            "metric_type": "dispatch_outcome",
            "component": "dispatcher",
            "status": status,
            "envelope_count": envelope_count,
            "field_count": field_count,
            "correlation_id": correlation_id or get_correlation_id(),
        },
    )


def record_change_detected(source_key: str, field_count: int, first_time: bool = False) -> None:
    logger.info(
        "metric_change_detected",
        extra={
            "metric_type": "change_detected",
            "component": "change_detector",
            "source_key": source_key,
            "field_count": field_count,
            "first_time": first_time,
            "correlation_id": get_correlation_id(),
        },
    )

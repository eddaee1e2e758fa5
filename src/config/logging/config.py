"""Configuração centralizada de logging.

Funções para configurar logging estruturado JSON com:
- Campos obrigatórios (correlation_id, service, level, logger, message)
- Mascaramento de destinatários
- Níveis configuráveis por ambiente

Uso:
    from config.logging import configure_logging, get_logger

    # Na inicialização do worker ou da API (app/bootstrap/)
    configure_logging(level="INFO", service_name="loops_sync")

    # Em qualquer módulo
    logger = get_logger(__name__)
    logger.info("source_polled", extra={"source_key": "airtable:app123"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from config.logging.filters import CorrelationIdFilter, RecipientMaskFilter
from config.logging.formatters import create_json_formatter

if TYPE_CHECKING:
    from collections.abc import Callable

# Níveis de log válidos
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Nome padrão do serviço
DEFAULT_SERVICE_NAME = "loops_sync"

# Bibliotecas ruidosas em DEBUG (clientes gRPC/HTTP do Firestore e Redis)
NOISY_LOGGERS = ("google", "urllib3", "grpc", "redis")


def configure_logging(
    level: str = "INFO",
    service_name: str = DEFAULT_SERVICE_NAME,
    correlation_id_getter: Callable[[], str] | None = None,
) -> None:
    """Configura logging JSON estruturado para o serviço.

    Deve ser chamada uma vez na inicialização (app/bootstrap/).

    Args:
        level: Nível de log (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        service_name: Nome do serviço para identificação nos logs.
        correlation_id_getter: Função opcional que retorna o correlation_id
            do contexto atual (ex: de ContextVar).

    Raises:
        ValueError: Se o nível de log for inválido.
    """
    level_upper = level.upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Nível de log inválido: {level}. "
            f"Válidos: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )

    handler = logging.StreamHandler()
    handler.setLevel(level_upper)
    handler.setFormatter(create_json_formatter())
    handler.addFilter(CorrelationIdFilter(service_name, correlation_id_getter))
    handler.addFilter(RecipientMaskFilter())

    root = logging.getLogger()
    root.setLevel(level_upper)
    # Substituir handlers existentes para evitar duplicação
    root.handlers = [handler]

    if level_upper == "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Retorna logger para o módulo especificado.

    Os filters injetam automaticamente service e correlation_id.
    """
    return logging.getLogger(name)


def log_fallback(
    logger: logging.Logger,
    component: str,
    reason: str | None = None,
    elapsed_ms: float | None = None,
    level: int = logging.INFO,
) -> None:
    """Log observável de fallback aplicado (sem PII).

    Usado quando uma política de degradação foi acionada
    (ex: regex de ignore estourou o tempo e foi tratada como "não casa").

    Args:
        logger: Logger instance.
        component: Nome do componente (ex: "ignore_matcher").
        reason: Razão do fallback (ex: "regex_timeout").
        elapsed_ms: Tempo decorrido em ms (quando aplicável).
        level: Nível do log (WARNING quando o fallback muda o resultado).
    """
    extra: dict[str, object] = {
        "fallback_used": True,
        "component": component,
    }
    if reason:
        extra["reason"] = reason
    if elapsed_ms is not None:
        extra["elapsed_ms"] = elapsed_ms

    logger.log(
        level,
        "Fallback applied for %s",
        component,
        extra=extra,
    )

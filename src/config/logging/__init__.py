"""Configuração de logging estruturado.

Re-exporta funções e classes para configuração de logging JSON.

Uso:
    from config.logging import configure_logging, get_logger

    # Na inicialização (bootstrap)
    configure_logging(level="INFO", service_name="loops_sync")

    # Em qualquer módulo
    logger = get_logger(__name__)
    logger.info("envelope_enqueued", extra={"envelope_id": "abc123"})

Campos obrigatórios em todo log:
- correlation_id
- service
- level
- logger
- message
- asctime

Destinatários (e-mails) passados via `extra={"recipient": ...}` são
mascarados pelo RecipientMaskFilter antes da serialização.
"""

from config.logging.config import configure_logging, get_logger, log_fallback
from config.logging.filters import CorrelationIdFilter, RecipientMaskFilter, mask_recipient
from config.logging.formatters import (
    FIELD_RENAME_MAP,
    REQUIRED_LOG_FIELDS,
    create_json_formatter,
)

__all__ = [
    "FIELD_RENAME_MAP",
    "REQUIRED_LOG_FIELDS",
    # Filters
    "CorrelationIdFilter",
    "RecipientMaskFilter",
    # Configuração principal
    "configure_logging",
    # Formatters
    "create_json_formatter",
    "get_logger",
    "log_fallback",
    "mask_recipient",
]

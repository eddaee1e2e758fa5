"""Filters de logging para injeção de contexto e mascaramento.

Campos injetados:
- correlation_id: ID de rastreamento do ciclo de poll/dispatch
- service: Nome do serviço (ex: loops_sync)

Campos mascarados:
- recipient: e-mail normalizado do destinatário (PII)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


def mask_recipient(recipient: str | None) -> str:
    """Mascara e-mail preservando só o primeiro caractere e o domínio.

    >>> mask_recipient("maria@example.com")
    'm***@example.com'
    """
    if not recipient:
        return ""
    local, sep, domain = recipient.partition("@")
    if not sep:
        return recipient[:1] + "***"
    return f"{local[:1]}***@{domain}"


class CorrelationIdFilter(logging.Filter):
    """Injeta correlation_id e service em cada record de log.

    Args:
        service_name: Nome do serviço para identificação nos logs.
        correlation_id_getter: Função que retorna o correlation_id atual.
            Se não fornecida, usa string vazia como fallback.
    """

    def __init__(
        self,
        service_name: str,
        correlation_id_getter: Callable[[], str] | None = None,
    ) -> None:
        super().__init__()
        self._service_name = service_name
        self._get_correlation_id = correlation_id_getter or (lambda: "")

    def filter(self, record: logging.LogRecord) -> bool:
        """Adiciona correlation_id e service ao record.

        Se correlation_id já foi passado via `extra`, preserva o valor.
        """
        existing = getattr(record, "correlation_id", None)
        record.correlation_id = existing if existing else self._get_correlation_id()
        record.service = self._service_name
        return True


class RecipientMaskFilter(logging.Filter):
    """Mascara o campo `recipient` passado via `extra`.

    Nunca filtra records, apenas reescreve o campo.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        recipient = getattr(record, "recipient", None)
        if isinstance(recipient, str):
            record.recipient = mask_recipient(recipient)
        return True

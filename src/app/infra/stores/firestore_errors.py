"""Tradução de erros do Firestore para erros de infraestrutura."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from utils.errors import (
    ConcurrentWriteError,
    FirestoreUnavailableError,
    InvalidTransitionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Erros de domínio atravessam sem tradução
_PASSTHROUGH = (ConcurrentWriteError, InvalidTransitionError, ValidationError, KeyError)


@contextmanager
def firestore_errors(operation: str, collection: str) -> Iterator[None]:
    """Converte falhas inesperadas do SDK em FirestoreUnavailableError."""
    try:
        yield
    except _PASSTHROUGH:
        raise
    except Exception as exc:
        logger.error(
            "firestore_operation_failed",
            extra={
                "operation": operation,
                "collection": collection,
                "error_type": type(exc).__name__,
            },
        )
        raise FirestoreUnavailableError(
            f"Falha no Firestore ({operation} em {collection})"
        ) from exc

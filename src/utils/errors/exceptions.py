"""Exceções de domínio e de infraestrutura do pipeline de sincronização."""

from __future__ import annotations

from typing import Any


class InfrastructureError(RuntimeError):
    """Base para falhas de infraestrutura transitórias."""


class RedisConnectionError(InfrastructureError):
    """Falha de conexão/timeout ao acessar Redis."""


class FirestoreUnavailableError(InfrastructureError):
    """Falha de indisponibilidade ao acessar Firestore."""


class ConcurrentWriteError(RuntimeError):
    """Escrita condicional perdeu a corrida para outro escritor.

    O chamador deve reler o registro e comparar novamente,
    nunca sobrescrever às cegas.
    """


class StaleBaselineError(ConcurrentWriteError):
    """Baseline foi alterado por outro escritor entre leitura e escrita."""


class StaleEnvelopeError(ConcurrentWriteError):
    """Envelope mudou de status entre leitura e escrita."""


class InvalidTransitionError(ValueError):
    """Transição de status não permitida pela tabela do FSM."""


class RateLimitExhaustedError(RuntimeError):
    """Limite de tentativas de acquire esgotado sem obter slot."""

    def __init__(self, bucket: str, attempts: int) -> None:
        super().__init__(f"Rate limit esgotado para {bucket} após {attempts} tentativas")
        self.bucket = bucket
        self.attempts = attempts


class ConsistencyError(RuntimeError):
    """Execuções redundantes não chegaram a um resultado unânime."""

    def __init__(self, message: str, *, rounds: int, reason: str = "") -> None:
        super().__init__(message)
        self.rounds = rounds
        self.reason = reason


class ValidationError(ValueError):
    """Entrada rejeitada na criação (nunca persistida)."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InvalidIgnorePatternError(ValidationError):
    """Padrão de ignore inválido (não compila ou excede tamanho)."""


class DuplicateIgnoreRuleError(ValidationError):
    """Já existe regra com o mesmo (source_type, pattern)."""


class InvalidRecipientError(ValidationError):
    """Destinatário vazio ou inválido após normalização."""

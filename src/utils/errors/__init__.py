"""Exceções utilitárias compartilhadas."""

from .exceptions import (
    ConcurrentWriteError,
    ConsistencyError,
    DuplicateIgnoreRuleError,
    FirestoreUnavailableError,
    InfrastructureError,
    InvalidIgnorePatternError,
    InvalidRecipientError,
    InvalidTransitionError,
    RateLimitExhaustedError,
    RedisConnectionError,
    StaleBaselineError,
    StaleEnvelopeError,
    ValidationError,
)

__all__ = [
    "ConcurrentWriteError",
    "ConsistencyError",
    "DuplicateIgnoreRuleError",
    "FirestoreUnavailableError",
    "InfrastructureError",
    "InvalidIgnorePatternError",
    "InvalidRecipientError",
    "InvalidTransitionError",
    "RateLimitExhaustedError",
    "RedisConnectionError",
    "StaleBaselineError",
    "StaleEnvelopeError",
    "ValidationError",
]

"""
Exports públicos do módulo fsm/states.

Status canônicos do envelope do outbox.
"""

from fsm.states.envelope import (
    DEFAULT_INITIAL_STATUS,
    REQUEUEABLE_STATUSES,
    TERMINAL_STATUSES,
    EnvelopeStatus,
    is_terminal,
    is_valid_status,
    parse_status,
)

__all__ = [
    "DEFAULT_INITIAL_STATUS",
    "REQUEUEABLE_STATUSES",
    "TERMINAL_STATUSES",
    "EnvelopeStatus",
    "is_terminal",
    "is_valid_status",
    "parse_status",
]

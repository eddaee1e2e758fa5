"""
Exports públicos do módulo fsm/rules.

Guards avaliados antes de qualquer escrita de status.
"""

from fsm.rules.guards import (
    DEFAULT_GUARDS,
    Guard,
    GuardResult,
    evaluate_guards,
    guard_same_status,
    guard_terminal_status,
    guard_valid_status,
)

__all__ = [
    "DEFAULT_GUARDS",
    "Guard",
    "GuardResult",
    "evaluate_guards",
    "guard_same_status",
    "guard_terminal_status",
    "guard_valid_status",
]

"""
Exports públicos do módulo fsm/manager.

Aplicação de transições de status do envelope.
"""

from fsm.manager.machine import attempt_transition, require_transition

__all__ = [
    "attempt_transition",
    "require_transition",
]

"""
Exports públicos do módulo fsm/types.

Tipos e estruturas de dados para transições de status.
"""

from fsm.types.transition import StatusTransition, TransitionResult

__all__ = [
    "StatusTransition",
    "TransitionResult",
]

"""
Módulo FSM — Máquina de status do envelope do outbox.

Implementa a tabela de transições explícita verificada em toda
escrita de status de envelope.

Estrutura:
    - states/: Status do envelope (EnvelopeStatus enum)
    - transitions/: Regras de transição (VALID_TRANSITIONS)
    - rules/: Guards
    - manager/: Aplicação de transições (attempt/require)
    - types/: Tipos de dados (StatusTransition, TransitionResult)
"""

# Manager
from fsm.manager import attempt_transition, require_transition

# Guards/Rules
from fsm.rules import GuardResult, evaluate_guards

# Status
from fsm.states import (
    DEFAULT_INITIAL_STATUS,
    REQUEUEABLE_STATUSES,
    TERMINAL_STATUSES,
    EnvelopeStatus,
    is_terminal,
    is_valid_status,
    parse_status,
)

# Transições
from fsm.transitions import (
    VALID_TRANSITIONS,
    get_valid_targets,
    is_transition_valid,
    validate_transition_map,
)

# Types
from fsm.types import StatusTransition, TransitionResult

__all__ = [
    "DEFAULT_INITIAL_STATUS",
    "REQUEUEABLE_STATUSES",
    "TERMINAL_STATUSES",
    # Transições
    "VALID_TRANSITIONS",
    # Status
    "EnvelopeStatus",
    # Guards
    "GuardResult",
    # Types
    "StatusTransition",
    "TransitionResult",
    # Manager
    "attempt_transition",
    "evaluate_guards",
    "get_valid_targets",
    "is_terminal",
    "is_transition_valid",
    "is_valid_status",
    "parse_status",
    "require_transition",
    "validate_transition_map",
]

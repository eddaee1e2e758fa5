"""
Aplicação de transições de status do envelope.

Ponto único usado pelos stores do outbox: valida a tabela de
transições, avalia guards e produz o registro da transição.
"""

from typing import Any

from fsm.rules.guards import evaluate_guards
from fsm.states.envelope import EnvelopeStatus
from fsm.transitions.rules import is_transition_valid
from fsm.types.transition import StatusTransition, TransitionResult
from utils.errors import InvalidTransitionError


def attempt_transition(
    envelope_id: str,
    current: EnvelopeStatus,
    target: EnvelopeStatus,
    trigger: str,
    metadata: dict[str, Any] | None = None,
) -> TransitionResult:
    """
    Tenta realizar uma transição de status.

    Args:
        envelope_id: Envelope afetado
        current: Status atual (como lido do store)
        target: Status de destino
        trigger: Identificador do gatilho
        metadata: Dados adicionais para auditoria (nunca PII)

    Returns:
        TransitionResult com sucesso/falha e dados da transição
    """
    guard_result = evaluate_guards(current, target)
    if not guard_result.allowed:
        return TransitionResult(success=False, error_reason=guard_result.reason)

    if not is_transition_valid(current, target):
        return TransitionResult(
            success=False,
            error_reason=f"Transição inválida: {current.name} → {target.name}",
        )

    transition = StatusTransition(
        envelope_id=envelope_id,
        from_status=current,
        to_status=target,
        trigger=trigger,
        metadata=metadata or {},
    )
    return TransitionResult(success=True, transition=transition)


def require_transition(
    envelope_id: str,
    current: EnvelopeStatus,
    target: EnvelopeStatus,
    trigger: str,
    metadata: dict[str, Any] | None = None,
) -> StatusTransition:
    """
    Como attempt_transition, mas levanta em caso de recusa.

    Raises:
        InvalidTransitionError: Se a transição não é permitida
    """
    result = attempt_transition(envelope_id, current, target, trigger, metadata)
    if not result.success or result.transition is None:
        raise InvalidTransitionError(result.error_reason or "Transição recusada")
    return result.transition

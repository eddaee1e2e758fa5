"""
Guards para transições de status.

Regras adicionais avaliadas antes de qualquer escrita de status,
além da tabela VALID_TRANSITIONS.
"""

from collections.abc import Callable

from fsm.states.envelope import TERMINAL_STATUSES, EnvelopeStatus


class GuardResult:
    """
    Resultado da avaliação de um guard.

    Attributes:
        allowed: Se a transição é permitida
        reason: Motivo do bloqueio (se allowed=False)
    """

    __slots__ = ("allowed", "reason")

    def __init__(self, allowed: bool, reason: str | None = None) -> None:
        self.allowed = allowed
        self.reason = reason

    @classmethod
    def allow(cls) -> "GuardResult":
        """Cria resultado permitindo a transição."""
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "GuardResult":
        """Cria resultado negando a transição."""
        return cls(allowed=False, reason=reason)


Guard = Callable[[EnvelopeStatus, EnvelopeStatus], GuardResult]


def guard_valid_status(
    from_status: EnvelopeStatus,
    to_status: EnvelopeStatus,
) -> GuardResult:
    """Guard: ambos os status precisam ser membros do enum."""
    if not isinstance(from_status, EnvelopeStatus):
        return GuardResult.deny(f"Status de origem inválido: {from_status}")

    if not isinstance(to_status, EnvelopeStatus):
        return GuardResult.deny(f"Status de destino inválido: {to_status}")

    return GuardResult.allow()


def guard_terminal_status(
    from_status: EnvelopeStatus,
    to_status: EnvelopeStatus,
) -> GuardResult:
    """
    Guard: status terminais não permitem saída.

    Retry de FAILED/PARTIALLY_SENT é feito com um novo envelope.
    """
    if from_status in TERMINAL_STATUSES:
        return GuardResult.deny(
            f"Status {from_status.name} é terminal, não permite transição"
        )
    return GuardResult.allow()


def guard_same_status(
    from_status: EnvelopeStatus,
    to_status: EnvelopeStatus,
) -> GuardResult:
    """Guard: transição reflexiva nunca é uma escrita válida."""
    if from_status == to_status:
        return GuardResult.deny(
            f"Transição reflexiva não permitida: {from_status.name} → {to_status.name}"
        )
    return GuardResult.allow()


# Aplicados em ordem; todos devem permitir
DEFAULT_GUARDS: list[Guard] = [
    guard_valid_status,
    guard_terminal_status,
    guard_same_status,
]


def evaluate_guards(
    from_status: EnvelopeStatus,
    to_status: EnvelopeStatus,
    guards: list[Guard] | None = None,
) -> GuardResult:
    """
    Avalia todos os guards para uma transição.

    Returns:
        GuardResult do primeiro guard que negar, ou allow() se todos passarem
    """
    guards_to_apply = guards if guards is not None else DEFAULT_GUARDS

    for guard in guards_to_apply:
        result = guard(from_status, to_status)
        if not result.allowed:
            return result

    return GuardResult.allow()

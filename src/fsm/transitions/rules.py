"""
Regras de transição válidas entre status do envelope.

Este módulo define o grafo de transições do outbox. Toda escrita de
status nos stores passa por is_transition_valid.
"""

from fsm.states.envelope import TERMINAL_STATUSES, EnvelopeStatus

# Tipagem explícita do mapa de transições
TransitionMap = dict[EnvelopeStatus, frozenset[EnvelopeStatus]]

# Chave: status de origem
# Valor: conjunto de status de destino permitidos
VALID_TRANSITIONS: TransitionMap = {
    # QUEUED: só sai via claim do dispatcher
    EnvelopeStatus.QUEUED: frozenset({
        EnvelopeStatus.DISPATCHING,
    }),

    # DISPATCHING: um resultado terminal, ou devolução para a fila
    # (lote interrompido ou claim com lease expirado)
    EnvelopeStatus.DISPATCHING: frozenset({
        EnvelopeStatus.QUEUED,
        EnvelopeStatus.SENT,
        EnvelopeStatus.IGNORED_NOOP,
        EnvelopeStatus.FAILED,
        EnvelopeStatus.PARTIALLY_SENT,
    }),

    # Terminais: retry é um NOVO envelope, nunca transição in-place
    EnvelopeStatus.SENT: frozenset(),
    EnvelopeStatus.IGNORED_NOOP: frozenset(),
    EnvelopeStatus.FAILED: frozenset(),
    EnvelopeStatus.PARTIALLY_SENT: frozenset(),
}


def get_valid_targets(status: EnvelopeStatus) -> frozenset[EnvelopeStatus]:
    """
    Retorna os status de destino válidos para um status de origem.

    Args:
        status: Status de origem

    Returns:
        Conjunto de status de destino permitidos (vazio se terminal)
    """
    return VALID_TRANSITIONS.get(status, frozenset())


def is_transition_valid(from_status: EnvelopeStatus, to_status: EnvelopeStatus) -> bool:
    """
    Verifica se uma transição é válida segundo a tabela.

    Args:
        from_status: Status de origem
        to_status: Status de destino

    Returns:
        True se a transição é permitida, False caso contrário
    """
    if from_status in TERMINAL_STATUSES:
        return False

    return to_status in get_valid_targets(from_status)


def validate_transition_map() -> list[str]:
    """
    Valida a integridade do mapa de transições.

    Verifica:
    - Todos os status do enum estão no mapa
    - Status terminais têm conjunto vazio
    - Todo status não-terminal alcança algum terminal

    Returns:
        Lista de erros encontrados (vazia se válido)
    """
    errors: list[str] = []

    for status in EnvelopeStatus:
        if status not in VALID_TRANSITIONS:
            errors.append(f"Status {status.name} ausente em VALID_TRANSITIONS")

    for status in TERMINAL_STATUSES:
        targets = VALID_TRANSITIONS.get(status, frozenset())
        if targets:
            errors.append(
                f"Status terminal {status.name} não deveria ter transições: {targets}"
            )

    for from_status, targets in VALID_TRANSITIONS.items():
        for target in targets:
            if not isinstance(target, EnvelopeStatus):
                errors.append(f"Transição {from_status.name} → {target}: destino inválido")

    for status in EnvelopeStatus:
        if status in TERMINAL_STATUSES:
            continue
        if not _reaches_terminal(status):
            errors.append(f"Status {status.name} não alcança nenhum status terminal")

    return errors


def _reaches_terminal(start: EnvelopeStatus) -> bool:
    seen: set[EnvelopeStatus] = set()
    pending = [start]
    while pending:
        current = pending.pop()
        if current in TERMINAL_STATUSES:
            return True
        if current in seen:
            continue
        seen.add(current)
        pending.extend(VALID_TRANSITIONS.get(current, frozenset()))
    return False

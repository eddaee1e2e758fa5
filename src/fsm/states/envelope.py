"""
Status canônicos de um envelope do outbox.

Este módulo define os status que um envelope pode assumir entre
o enfileiramento pelo pipeline de mudanças e a escrita do resultado
pelo dispatcher.
"""

from enum import StrEnum


class EnvelopeStatus(StrEnum):
    """
    Status de um envelope do outbox.

    Status não-terminais:
        - QUEUED: Aguardando dispatcher (único status inicial)
        - DISPATCHING: Reivindicado por um dispatcher, entrega em andamento
          (volta a QUEUED se o lote é interrompido ou o lease expira)

    Status terminais:
        - SENT: Entregue por completo
        - IGNORED_NOOP: Entrega desnecessária (payload vazio após filtros)
        - FAILED: Tentativa de entrega falhou
        - PARTIALLY_SENT: Payload multi-campo entregue em parte
    """

    QUEUED = "queued"
    DISPATCHING = "dispatching"

    SENT = "sent"
    IGNORED_NOOP = "ignored_noop"
    FAILED = "failed"
    PARTIALLY_SENT = "partially_sent"

    def __str__(self) -> str:
        return self.value


# Uma vez terminal, o envelope nunca muda de status
TERMINAL_STATUSES: frozenset[EnvelopeStatus] = frozenset({
    EnvelopeStatus.SENT,
    EnvelopeStatus.IGNORED_NOOP,
    EnvelopeStatus.FAILED,
    EnvelopeStatus.PARTIALLY_SENT,
})

# Terminais elegíveis para re-enfileiramento externo (como NOVO envelope)
REQUEUEABLE_STATUSES: frozenset[EnvelopeStatus] = frozenset({
    EnvelopeStatus.FAILED,
    EnvelopeStatus.PARTIALLY_SENT,
})

DEFAULT_INITIAL_STATUS: EnvelopeStatus = EnvelopeStatus.QUEUED


def is_terminal(status: EnvelopeStatus) -> bool:
    """Verifica se o status é terminal."""
    return status in TERMINAL_STATUSES


def is_valid_status(status: object) -> bool:
    """
    Verifica se o valor é um status conhecido.

    Aceita membros do enum ou a string persistida ("queued", "sent"...).
    """
    if isinstance(status, EnvelopeStatus):
        return True
    return isinstance(status, str) and status in EnvelopeStatus._value2member_map_


def parse_status(value: str | EnvelopeStatus) -> EnvelopeStatus:
    """
    Converte valor persistido em EnvelopeStatus.

    Raises:
        ValueError: Se o valor não corresponde a nenhum status
    """
    if not is_valid_status(value):
        raise ValueError(f"Status de envelope desconhecido: {value!r}")
    return EnvelopeStatus(value)

"""Protocolo do store da outbox."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.domain.envelope import Envelope
    from fsm.states import EnvelopeStatus


class OutboxStoreProtocol(ABC):
    """Contrato assíncrono para envelopes da outbox.

    Toda escrita de status passa pela tabela de transições do fsm
    e é condicional à versão lida (CAS).
    """

    @abstractmethod
    async def add(self, envelope: Envelope) -> Envelope:
        """Persiste um envelope novo (sempre queued)."""

    @abstractmethod
    async def get(self, envelope_id: str) -> Envelope | None:
        """Carrega o envelope pelo id."""

    @abstractmethod
    async def find(
        self,
        *,
        status: EnvelopeStatus | None = None,
        recipient: str | None = None,
        limit: int | None = 100,
    ) -> list[Envelope]:
        """Lista envelopes do mais antigo para o mais novo (limit=None = todos)."""

    @abstractmethod
    async def claim_queued(self, limit: int, now: datetime) -> list[Envelope]:
        """Move até `limit` envelopes queued (mais antigos) para dispatching.

        Envelopes reivindicados por outro dispatcher entre a leitura e a
        escrita são omitidos do retorno.
        """

    @abstractmethod
    async def transition(
        self,
        envelope: Envelope,
        target: EnvelopeStatus,
        *,
        trigger: str,
        error: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Envelope:
        """Aplica a transição de status.

        Raises:
            InvalidTransitionError: Se a transição não é permitida.
            StaleEnvelopeError: Se o envelope mudou desde a leitura.
        """

    @abstractmethod
    async def delete_terminal_before(self, older_than: datetime, limit: int) -> int:
        """Remove até `limit` envelopes terminais com updated_at < older_than."""

    @abstractmethod
    async def release_stale_claims(self, older_than: datetime, limit: int, now: datetime) -> int:
        """Devolve para queued até `limit` envelopes em dispatching com updated_at < older_than.

        Recupera claims de um dispatcher que morreu no meio do lote.
        """

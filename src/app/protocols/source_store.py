"""Protocolo do store de origens consultadas (polling)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.domain.source import Source


class SourceStoreProtocol(ABC):
    """Contrato assíncrono para persistência de Source.

    compare_and_set_next_poll é o único ponto de serialização
    entre enfileiradores concorrentes.
    """

    @abstractmethod
    async def get(self, key: str) -> Source | None:
        """Carrega a origem pela chave "tipo:id"."""

    @abstractmethod
    async def save(self, source: Source) -> None:
        """Cria ou substitui a origem."""

    @abstractmethod
    async def update(self, key: str, changes: dict[str, Any]) -> None:
        """Atualiza apenas os campos informados.

        Raises:
            KeyError: Se a origem não existir.
        """

    @abstractmethod
    async def list_due(self, now: datetime, limit: int) -> list[Source]:
        """Origens com next_poll_at <= now, ordenadas por next_poll_at."""

    @abstractmethod
    async def compare_and_set_next_poll(
        self,
        key: str,
        expected: datetime,
        new: datetime,
    ) -> bool:
        """Troca next_poll_at de expected para new de forma atômica.

        Returns:
            True se a troca ocorreu; False se o valor atual difere de expected.
        """

"""Protocolo do cliente do destino (plataforma de contatos)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class DestinationClientProtocol(ABC):
    @abstractmethod
    async def find_contact(self, recipient: str) -> dict[str, Any] | None:
        """Propriedades atuais do contato no destino.

        Returns:
            Propriedades do contato, ou None se o contato não existe.
        """

    @abstractmethod
    async def update_contact(self, recipient: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Atualiza propriedades do contato.

        Returns:
            Resposta decodificada; sucesso somente se contiver success=True.
        """

"""Protocolos de baselines de entrega e auditoria de contato."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.domain.envelope import ContactChangeAudit, DeliveryBaseline


class DeliveryBaselineStoreProtocol(ABC):
    """Último valor entregue por (recipient, field_name)."""

    @abstractmethod
    async def get_many(
        self,
        recipient: str,
        field_names: Iterable[str],
    ) -> dict[str, DeliveryBaseline]:
        """Baselines existentes indexadas por field_name (expiradas inclusive)."""

    @abstractmethod
    async def exists_for(self, recipient: str) -> bool:
        """True se há alguma baseline (expirada inclusive) para o destinatário."""

    @abstractmethod
    async def upsert_many(self, baselines: Iterable[DeliveryBaseline]) -> None:
        """Cria ou substitui baselines."""

    @abstractmethod
    async def delete_expired(self, now: datetime, limit: int) -> int:
        """Remove até `limit` baselines com expires_at <= now."""


class ContactAuditStoreProtocol(ABC):
    """Trilha append-only de campos enviados ao destino."""

    @abstractmethod
    async def append_many(self, audits: Iterable[ContactChangeAudit]) -> None:
        """Acrescenta registros de auditoria."""

    @abstractmethod
    async def list_for_recipient(self, recipient: str, limit: int = 100) -> list[ContactChangeAudit]:
        """Registros do destinatário, mais recentes primeiro."""

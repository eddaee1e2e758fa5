"""Protocolo do adaptador de leitura da origem externa.

A implementação concreta (cliente HTTP da origem) é externa a este
serviço; o pipeline depende apenas deste contrato.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.domain.source import Source


@dataclass(frozen=True, slots=True)
class SourceField:
    name: str
    value: Any = None


@dataclass(frozen=True, slots=True)
class SourceRow:
    """Linha lida da origem.

    row_id identifica a linha dentro da origem ("tabela/registro").
    """

    table_id: str
    record_id: str
    recipient: str | None = None
    fields: dict[str, SourceField] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def row_id(self) -> str:
        return f"{self.table_id}/{self.record_id}"


@dataclass(frozen=True, slots=True)
class DiscoveredSource:
    """Origem listada pela API externa (ex.: base do Airtable)."""

    source_id: str
    name: str | None = None


class SourceAdapterProtocol(ABC):
    @abstractmethod
    async def fetch_rows(self, source: Source, since: datetime | None) -> list[SourceRow]:
        """Linhas modificadas desde `since` (None = todas)."""

    @abstractmethod
    async def list_sources(self) -> list[DiscoveredSource]:
        """Origens visíveis para a credencial configurada."""

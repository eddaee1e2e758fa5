"""Protocolo do store de baselines de valores de campo."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.domain.baseline import Baseline


class BaselineStoreProtocol(ABC):
    """Contrato assíncrono para baselines com escrita condicional."""

    @abstractmethod
    async def get(self, source_key: str, row_id: str, field_id: str) -> Baseline | None:
        """Carrega a baseline ou None se ainda não existe."""

    @abstractmethod
    async def insert(self, baseline: Baseline) -> Baseline:
        """Cria a baseline (version 0).

        Raises:
            StaleBaselineError: Se outra escrita criou a baseline antes.
        """

    @abstractmethod
    async def compare_and_swap(self, baseline: Baseline, expected_version: int) -> Baseline:
        """Substitui a baseline se a versão persistida for expected_version.

        Raises:
            StaleBaselineError: Se a versão persistida mudou.
        """

    @abstractmethod
    async def delete_checked_before(self, older_than: datetime, limit: int) -> int:
        """Remove até `limit` baselines com last_checked_at < older_than.

        Returns:
            Quantidade removida.
        """

"""Protocolo do store de regras de ignore."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.domain.ignore_rule import IgnoreRule
    from app.domain.source import SourceType


class IgnoreRuleStoreProtocol(ABC):
    @abstractmethod
    async def add(self, rule: IgnoreRule) -> IgnoreRule:
        """Persiste a regra.

        Raises:
            DuplicateIgnoreRuleError: Se (source_type, pattern) já existe.
        """

    @abstractmethod
    async def list_for(self, source_type: SourceType) -> list[IgnoreRule]:
        """Regras do tipo de origem."""

    @abstractmethod
    async def remove(self, rule_id: str) -> bool:
        """Remove a regra. Retorna False se não existia."""

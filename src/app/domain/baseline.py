"""Baseline - último valor conhecido de um campo de uma linha da origem."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from app.domain.canonical import canonical_json, canonicalize


@dataclass(slots=True)
class Baseline:
    """Baseline por (source_key, row_id, field_id).

    last_known_value é sempre armazenado em forma canônica.
    version é usado para escrita condicional (CAS).
    """

    source_key: str
    row_id: str
    field_id: str
    last_known_value: Any
    value_last_updated_at: datetime
    last_checked_at: datetime
    first_seen_at: datetime
    checked_count: int = 1
    version: int = 0

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source_key, self.row_id, self.field_id)

    @property
    def doc_id(self) -> str:
        return baseline_doc_id(self.source_key, self.row_id, self.field_id)

    @classmethod
    def first_seen(
        cls,
        source_key: str,
        row_id: str,
        field_id: str,
        value: Any,
        checked_at: datetime,
    ) -> Baseline:
        return cls(
            source_key=source_key,
            row_id=row_id,
            field_id=field_id,
            last_known_value=canonicalize(value),
            value_last_updated_at=checked_at,
            last_checked_at=checked_at,
            first_seen_at=checked_at,
            checked_count=1,
        )

    def differs_from(self, value: Any) -> bool:
        return canonical_json(self.last_known_value) != canonical_json(value)

    def checked(self, value: Any, checked_at: datetime) -> Baseline:
        """Próxima versão da baseline após uma verificação.

        Valor e value_last_updated_at só mudam se o valor canônico mudou;
        last_checked_at e checked_count sempre avançam.
        """
        changed = self.differs_from(value)
        return replace(
            self,
            last_known_value=canonicalize(value) if changed else self.last_known_value,
            value_last_updated_at=checked_at if changed else self.value_last_updated_at,
            last_checked_at=checked_at,
            checked_count=self.checked_count + 1,
            version=self.version + 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_key": self.source_key,
            "row_id": self.row_id,
            "field_id": self.field_id,
            "last_known_value": self.last_known_value,
            "value_last_updated_at": self.value_last_updated_at,
            "last_checked_at": self.last_checked_at,
            "first_seen_at": self.first_seen_at,
            "checked_count": self.checked_count,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Baseline:
        return cls(
            source_key=data["source_key"],
            row_id=data["row_id"],
            field_id=data["field_id"],
            last_known_value=data.get("last_known_value"),
            value_last_updated_at=data["value_last_updated_at"],
            last_checked_at=data["last_checked_at"],
            first_seen_at=data["first_seen_at"],
            checked_count=int(data.get("checked_count") or 0),
            version=int(data.get("version") or 0),
        )


def baseline_doc_id(source_key: str, row_id: str, field_id: str) -> str:
    # row_id pode conter "/" (tabela/registro), inválido em IDs do Firestore
    raw = "\x1f".join((source_key, row_id, field_id))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()

"""Source - origem consultada periodicamente (polling).

Contém apenas a matemática de agendamento (intervalo com jitter,
backoff exponencial). Persistência e CAS de reserva ficam no
PollScheduler.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_POLL_JITTER = 0.10
MIN_INTERVAL_SECONDS = 1
MAX_INTERVAL_SECONDS = 86_400
DEFAULT_MAX_BACKOFF_SECONDS = 1_800
MAX_BACKOFF_EXPONENT = 10


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SourceType(StrEnum):
    """Tipos de origem suportados (conjunto fechado)."""

    AIRTABLE = "airtable"


@dataclass(slots=True)
class Source:
    """Origem consultada periodicamente.

    Identidade: (source_type, source_id).
    consecutive_failures só volta a 0 em with_success.
    """

    source_type: SourceType
    source_id: str
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    poll_jitter: float | None = DEFAULT_POLL_JITTER
    next_poll_at: datetime = field(default_factory=_utcnow)
    last_poll_attempted_at: datetime | None = None
    last_successful_poll_at: datetime | None = None
    consecutive_failures: int = 0
    error_details: dict[str, Any] = field(default_factory=dict)
    cursor: dict[str, Any] | None = None
    display_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def key(self) -> str:
        return build_source_key(self.source_type, self.source_id)

    @property
    def humanized_name(self) -> str:
        return self.display_name or self.source_id

    @property
    def sync_since(self) -> datetime | None:
        """Marco para buscar linhas modificadas (cursor, ou último sucesso)."""
        if self.cursor and self.cursor.get("since") is not None:
            return self.cursor["since"]
        return self.last_successful_poll_at

    def next_interval_with_jitter(self, rand: Callable[[], float] = random.random) -> int:
        """Intervalo até a próxima consulta, com jitter simétrico.

        base * (1 + u*j) com u = 2*rand() - 1 em [-1, 1] e j em [0, 1],
        truncado para inteiro e limitado a [1, 86400] segundos.
        """
        base = self.poll_interval_seconds
        jitter = DEFAULT_POLL_JITTER if self.poll_jitter is None else self.poll_jitter
        jitter = min(max(float(jitter), 0.0), 1.0)
        spread = 2 * rand() - 1
        interval = int(base * (1 + spread * jitter))
        return min(max(interval, MIN_INTERVAL_SECONDS), MAX_INTERVAL_SECONDS)

    def reserved(self, now: datetime, rand: Callable[[], float] = random.random) -> Source:
        """Cópia com next_poll_at avançado para now + intervalo."""
        return replace(
            self,
            next_poll_at=now + timedelta(seconds=self.next_interval_with_jitter(rand)),
        )

    def with_attempt(self, now: datetime) -> Source:
        return replace(self, last_poll_attempted_at=now)

    def with_success(self, now: datetime, cursor: dict[str, Any] | None = None) -> Source:
        return replace(
            self,
            consecutive_failures=0,
            error_details={},
            last_successful_poll_at=now,
            cursor=self.cursor if cursor is None else cursor,
        )

    def with_failure(
        self,
        error_detail: dict[str, Any],
        now: datetime,
        max_backoff: int = DEFAULT_MAX_BACKOFF_SECONDS,
    ) -> Source:
        """Cópia com falha registrada e próxima consulta adiada.

        penalty = max(2**min(n, 10), 1)
        next_poll_at = max(next_poll_at, now) + min(base * penalty, max_backoff)
        """
        failures = self.consecutive_failures + 1
        delay = min(self.poll_interval_seconds * backoff_penalty(failures), max_backoff)
        return replace(
            self,
            consecutive_failures=failures,
            error_details={**self.error_details, **(error_detail or {})},
            next_poll_at=max(self.next_poll_at, now) + timedelta(seconds=delay),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_type": self.source_type.value,
            "source_id": self.source_id,
            "poll_interval_seconds": self.poll_interval_seconds,
            "poll_jitter": self.poll_jitter,
            "next_poll_at": self.next_poll_at,
            "last_poll_attempted_at": self.last_poll_attempted_at,
            "last_successful_poll_at": self.last_successful_poll_at,
            "consecutive_failures": self.consecutive_failures,
            "error_details": dict(self.error_details),
            "cursor": self.cursor,
            "display_name": self.display_name,
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        return cls(
            source_type=SourceType(data["source_type"]),
            source_id=data["source_id"],
            poll_interval_seconds=int(
                data.get("poll_interval_seconds") or DEFAULT_POLL_INTERVAL_SECONDS
            ),
            poll_jitter=data.get("poll_jitter", DEFAULT_POLL_JITTER),
            next_poll_at=data.get("next_poll_at") or _utcnow(),
            last_poll_attempted_at=data.get("last_poll_attempted_at"),
            last_successful_poll_at=data.get("last_successful_poll_at"),
            consecutive_failures=int(data.get("consecutive_failures") or 0),
            error_details=dict(data.get("error_details") or {}),
            cursor=data.get("cursor"),
            display_name=data.get("display_name"),
            metadata=dict(data.get("metadata") or {}),
            created_at=data.get("created_at") or _utcnow(),
        )


def backoff_penalty(consecutive_failures: int) -> int:
    return max(2 ** min(consecutive_failures, MAX_BACKOFF_EXPONENT), 1)


def build_source_key(source_type: SourceType | str, source_id: str) -> str:
    return f"{SourceType(source_type).value}:{source_id}"


def parse_source_key(key: str) -> tuple[SourceType, str]:
    """Inverso de build_source_key.

    Raises:
        ValueError: Se a chave não tiver o formato "tipo:id".
    """
    source_type, sep, source_id = key.partition(":")
    if not sep or not source_id:
        raise ValueError(f"Chave de origem inválida: {key!r}")
    return SourceType(source_type), source_id

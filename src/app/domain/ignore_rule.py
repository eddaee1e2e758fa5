"""IgnoreRule - padrão regex que exclui linhas da origem do pipeline.

Usa o pacote `regex` (suporta timeout por chamada). Padrões que
estouram o tempo ou falham na execução não bloqueiam o pipeline:
o comportamento é fail-open por padrão ("não casa").
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import regex

from app.domain.source import SourceType
from config.logging import get_logger, log_fallback
from utils.errors import InvalidIgnorePatternError

logger = get_logger(__name__)

MAX_PATTERN_LENGTH = 200
DEFAULT_MATCH_TIMEOUT_SECONDS = 0.01


def _utcnow() -> datetime:
    return datetime.now(UTC)


def compile_pattern(pattern: str, max_length: int = MAX_PATTERN_LENGTH) -> regex.Pattern:
    """Valida e compila o padrão.

    Raises:
        InvalidIgnorePatternError: Se vazio, longo demais ou inválido.
    """
    if not isinstance(pattern, str) or not pattern:
        raise InvalidIgnorePatternError("Padrão de ignore vazio")
    if len(pattern) > max_length:
        raise InvalidIgnorePatternError(
            f"Padrão de ignore excede {max_length} caracteres",
            details={"length": len(pattern), "max_length": max_length},
        )
    try:
        return regex.compile(pattern)
    except regex.error as exc:
        raise InvalidIgnorePatternError(
            f"Padrão de ignore inválido: {exc}",
            details={"pattern": pattern},
        ) from exc


@dataclass(slots=True)
class IgnoreRule:
    """Regra de ignore por (source_type, pattern).

    Sempre construir via create(): o padrão só é aceito se compilar.
    """

    source_type: SourceType
    pattern: str
    compiled: regex.Pattern = field(repr=False, compare=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)
    created_at: datetime = field(default_factory=_utcnow, compare=False)

    @classmethod
    def create(
        cls,
        source_type: SourceType | str,
        pattern: str,
        *,
        max_length: int = MAX_PATTERN_LENGTH,
        rule_id: str | None = None,
        created_at: datetime | None = None,
    ) -> IgnoreRule:
        compiled = compile_pattern(pattern, max_length)
        rule = cls(source_type=SourceType(source_type), pattern=pattern, compiled=compiled)
        if rule_id:
            rule.id = rule_id
        if created_at:
            rule.created_at = created_at
        return rule

    def matches(
        self,
        candidate: str | None,
        *,
        timeout: float = DEFAULT_MATCH_TIMEOUT_SECONDS,
        fail_open: bool = True,
    ) -> bool:
        """Retorna True se o padrão casa com o candidato.

        Timeout ou erro de execução: retorna `not fail_open` e loga.
        """
        if candidate is None:
            return False
        started = time.perf_counter()
        try:
            return self.compiled.search(str(candidate), timeout=timeout) is not None
        except TimeoutError:
            reason = "regex_timeout"
        except (regex.error, ValueError) as exc:
            reason = f"regex_error:{type(exc).__name__}"

        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        logger.warning(
            "ignore_rule_match_failed",
            extra={
                "rule_id": self.id,
                "source_type": self.source_type.value,
                "reason": reason,
                "fail_open": fail_open,
            },
        )
        log_fallback(
            logger, "ignore_rule", reason=reason, elapsed_ms=elapsed_ms, level=logging.WARNING
        )
        return not fail_open

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_type": self.source_type.value,
            "pattern": self.pattern,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IgnoreRule:
        return cls.create(
            data["source_type"],
            data["pattern"],
            rule_id=data.get("id"),
            created_at=data.get("created_at"),
        )

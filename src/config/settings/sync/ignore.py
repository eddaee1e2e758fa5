"""Settings das regras de ignore (regex por tipo de source)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class IgnoreSettings:
    """Configurações de ignore.

    Attributes:
        max_pattern_length: Tamanho máximo de um padrão
        regex_timeout_seconds: Orçamento de tempo por avaliação de regex
        fail_open: Timeout/erro conta como "não casa" (processamento segue)
    """

    max_pattern_length: int = 200
    regex_timeout_seconds: float = 0.01
    fail_open: bool = True

    def validate(self) -> list[str]:
        """Valida configurações de ignore."""
        errors: list[str] = []

        if self.max_pattern_length < 1:
            errors.append("IGNORE_MAX_PATTERN_LENGTH deve ser >= 1")

        if self.regex_timeout_seconds <= 0:
            errors.append("IGNORE_REGEX_TIMEOUT_SECONDS deve ser > 0")

        return errors


def _load_ignore_from_env() -> IgnoreSettings:
    """Carrega IgnoreSettings de variáveis de ambiente."""
    return IgnoreSettings(
        max_pattern_length=int(os.getenv("IGNORE_MAX_PATTERN_LENGTH", "200")),
        regex_timeout_seconds=float(os.getenv("IGNORE_REGEX_TIMEOUT_SECONDS", "0.01")),
        fail_open=os.getenv("IGNORE_FAIL_OPEN", "true").lower() in ("true", "1"),
    )


@lru_cache(maxsize=1)
def get_ignore_settings() -> IgnoreSettings:
    """Retorna instância cacheada de IgnoreSettings."""
    return _load_ignore_from_env()

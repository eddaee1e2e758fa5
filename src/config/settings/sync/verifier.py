"""Settings do verificador de consistência por unanimidade."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class VerifierSettings:
    """Configurações do ConsistencyVerifier.

    Attributes:
        runs: Execuções paralelas por rodada
        max_retries: Rodadas adicionais após a primeira
        retry_delay_seconds: Espera fixa entre rodadas
    """

    runs: int = 3
    max_retries: int = 2
    retry_delay_seconds: float = 1.0

    def validate(self) -> list[str]:
        """Valida configurações do verificador."""
        errors: list[str] = []

        if self.runs < 2:
            errors.append("VERIFIER_RUNS deve ser >= 2 (unanimidade de 1 não verifica nada)")

        if self.max_retries < 0:
            errors.append("VERIFIER_MAX_RETRIES deve ser >= 0")

        if self.retry_delay_seconds < 0:
            errors.append("VERIFIER_RETRY_DELAY_SECONDS deve ser >= 0")

        return errors


def _load_verifier_from_env() -> VerifierSettings:
    """Carrega VerifierSettings de variáveis de ambiente."""
    return VerifierSettings(
        runs=int(os.getenv("VERIFIER_RUNS", "3")),
        max_retries=int(os.getenv("VERIFIER_MAX_RETRIES", "2")),
        retry_delay_seconds=float(os.getenv("VERIFIER_RETRY_DELAY_SECONDS", "1.0")),
    )


@lru_cache(maxsize=1)
def get_verifier_settings() -> VerifierSettings:
    """Retorna instância cacheada de VerifierSettings."""
    return _load_verifier_from_env()

"""Settings do outbox e do dispatcher."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class OutboxSettings:
    """Configurações do outbox.

    Attributes:
        dispatch_batch_size: Envelopes reivindicados por lote
        delivery_baseline_ttl_days: Validade do último valor enviado por campo
        retention_days: Envelopes terminais mais antigos que isso são podados
        claim_lease_seconds: Envelopes em dispatching há mais tempo que isso
            voltam para queued no próximo drain
        new_contact_user_group: userGroup enviado a contatos novos ("" desliga)
    """

    dispatch_batch_size: int = 50
    delivery_baseline_ttl_days: int = 90
    retention_days: int = 30
    claim_lease_seconds: int = 300
    new_contact_user_group: str = "Hack Clubber"

    def validate(self) -> list[str]:
        """Valida configurações do outbox."""
        errors: list[str] = []

        if self.dispatch_batch_size < 1:
            errors.append("OUTBOX_DISPATCH_BATCH_SIZE deve ser >= 1")

        if self.delivery_baseline_ttl_days < 1:
            errors.append("OUTBOX_DELIVERY_BASELINE_TTL_DAYS deve ser >= 1")

        if self.retention_days < 1:
            errors.append("OUTBOX_RETENTION_DAYS deve ser >= 1")

        if self.claim_lease_seconds < 1:
            errors.append("OUTBOX_CLAIM_LEASE_SECONDS deve ser >= 1")

        return errors


def _load_outbox_from_env() -> OutboxSettings:
    """Carrega OutboxSettings de variáveis de ambiente."""
    return OutboxSettings(
        dispatch_batch_size=int(os.getenv("OUTBOX_DISPATCH_BATCH_SIZE", "50")),
        delivery_baseline_ttl_days=int(os.getenv("OUTBOX_DELIVERY_BASELINE_TTL_DAYS", "90")),
        retention_days=int(os.getenv("OUTBOX_RETENTION_DAYS", "30")),
        claim_lease_seconds=int(os.getenv("OUTBOX_CLAIM_LEASE_SECONDS", "300")),
        new_contact_user_group=os.getenv("OUTBOX_NEW_CONTACT_USER_GROUP", "Hack Clubber").strip(),
    )


@lru_cache(maxsize=1)
def get_outbox_settings() -> OutboxSettings:
    """Retorna instância cacheada de OutboxSettings."""
    return _load_outbox_from_env()

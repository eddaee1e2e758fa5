"""Settings do Firestore.

Collections usadas pelos stores duráveis do pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class FirestoreSettings:
    """Configurações do Firestore.

    Attributes:
        project_id: ID do projeto GCP (usa GCP_PROJECT se não definido)
        collection_sources: Collection de sources pollados
        collection_baselines: Collection de baselines por campo
        collection_envelopes: Collection do outbox
        collection_delivery_baselines: Último valor enviado por destinatário/campo
        collection_audit: Auditoria de mudanças entregues
        collection_ignore_rules: Regras de ignore por tipo de source
    """

    project_id: str = ""
    collection_sources: str = "sync_sources"
    collection_baselines: str = "field_value_baselines"
    collection_envelopes: str = "outbox_envelopes"
    collection_delivery_baselines: str = "delivery_baselines"
    collection_audit: str = "contact_change_audits"
    collection_ignore_rules: str = "sync_source_ignores"

    def validate(self, gcp_project: str) -> list[str]:
        """Valida configurações do Firestore.

        Args:
            gcp_project: Projeto GCP padrão para fallback.

        Returns:
            Lista de erros de validação.
        """
        errors: list[str] = []
        effective_project = self.project_id or gcp_project

        if not effective_project:
            errors.append("FIRESTORE_PROJECT_ID ou GCP_PROJECT deve estar configurado")

        collections = (
            self.collection_sources,
            self.collection_baselines,
            self.collection_envelopes,
            self.collection_delivery_baselines,
            self.collection_audit,
            self.collection_ignore_rules,
        )
        if len(set(collections)) != len(collections):
            errors.append("Collections do Firestore devem ser distintas")

        return errors


def _load_firestore_from_env() -> FirestoreSettings:
    """Carrega FirestoreSettings de variáveis de ambiente."""
    return FirestoreSettings(
        project_id=os.getenv("FIRESTORE_PROJECT_ID", ""),
        collection_sources=os.getenv("FIRESTORE_COLLECTION_SOURCES", "sync_sources"),
        collection_baselines=os.getenv(
            "FIRESTORE_COLLECTION_BASELINES", "field_value_baselines"
        ),
        collection_envelopes=os.getenv("FIRESTORE_COLLECTION_ENVELOPES", "outbox_envelopes"),
        collection_delivery_baselines=os.getenv(
            "FIRESTORE_COLLECTION_DELIVERY_BASELINES", "delivery_baselines"
        ),
        collection_audit=os.getenv("FIRESTORE_COLLECTION_AUDIT", "contact_change_audits"),
        collection_ignore_rules=os.getenv(
            "FIRESTORE_COLLECTION_IGNORE_RULES", "sync_source_ignores"
        ),
    )


@lru_cache(maxsize=1)
def get_firestore_settings() -> FirestoreSettings:
    """Retorna instância cacheada de FirestoreSettings."""
    return _load_firestore_from_env()

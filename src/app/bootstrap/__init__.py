"""Bootstrap da aplicação — inicialização e wiring.

Este módulo é o composition root: configura logging, valida settings
e conecta implementações concretas aos protocolos.

Uso:
    from app.bootstrap import initialize_app, get_outbox, get_rate_limiter_registry

    # Na inicialização do serviço
    initialize_app()

    # Obter serviços
    outbox = get_outbox()
    registry = get_rate_limiter_registry()
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from app.observability import get_correlation_id
from config.logging import configure_logging
from config.settings import (
    get_base_settings,
    get_change_detection_settings,
    get_firestore_settings,
    get_ignore_settings,
    get_outbox_settings,
    get_polling_settings,
    get_rate_limit_settings,
    get_store_settings,
    get_verifier_settings,
)

# Nome do serviço para logs e métricas
SERVICE_NAME = "loops_sync"

# Nível de log padrão (pode ser sobrescrito por env)
DEFAULT_LOG_LEVEL = "INFO"
STRICT_VALIDATION_ENVS = {"staging", "production"}

logger = logging.getLogger(__name__)


def initialize_app() -> None:
    """Inicializa a aplicação com todas as configurações necessárias.

    Deve ser chamada uma vez no início do serviço (API ou worker).
    """
    log_level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()

    configure_logging(
        level=log_level,
        service_name=SERVICE_NAME,
        correlation_id_getter=get_correlation_id,
    )
    validate_runtime_settings()


def initialize_test_app() -> None:
    """Inicializa a aplicação para testes (logging DEBUG, sem validação)."""
    configure_logging(
        level="DEBUG",
        service_name=f"{SERVICE_NAME}_test",
        correlation_id_getter=get_correlation_id,
    )


def collect_settings_errors() -> list[str]:
    """Erros de todas as settings, prefixados pelo grupo."""
    base = get_base_settings()
    errors: list[str] = [f"base: {error}" for error in base.validate()]

    store = get_store_settings()
    errors.extend(f"stores: {error}" for error in store.validate(base))
    if store.backend == "firestore":
        firestore_errors = get_firestore_settings().validate(base.gcp_project)
        errors.extend(f"firestore: {error}" for error in firestore_errors)

    errors.extend(f"rate_limit: {error}" for error in get_rate_limit_settings().validate(base))
    errors.extend(f"polling: {error}" for error in get_polling_settings().validate())
    errors.extend(
        f"change_detection: {error}" for error in get_change_detection_settings().validate()
    )
    errors.extend(f"outbox: {error}" for error in get_outbox_settings().validate())
    errors.extend(f"ignore: {error}" for error in get_ignore_settings().validate())
    errors.extend(f"verifier: {error}" for error in get_verifier_settings().validate())
    return errors


def validate_runtime_settings() -> None:
    """Valida settings obrigatórias no startup.

    Em `staging`/`production` falha rápido para impedir boot inválido.
    Em `development`/`test` mantém alerta sem bloquear execução local.

    Raises:
        RuntimeError: Se houver erros em ambiente estrito.
    """
    environment = get_base_settings().environment
    strict_mode = environment in STRICT_VALIDATION_ENVS
    errors = collect_settings_errors()

    if not errors:
        logger.info(
            "settings_validated",
            extra={"component": "bootstrap", "result": "ok", "environment": environment},
        )
        return

    logger.warning(
        "settings_validation_failed",
        extra={
            "component": "bootstrap",
            "result": "failed",
            "environment": environment,
            "error_count": len(errors),
            "errors": errors,
        },
    )
    if strict_mode:
        details = "\n".join(f"- {error}" for error in errors)
        raise RuntimeError(f"Configuração inválida para {environment}:\n{details}")


# ──────────────────────────────────────────────────────────────────────────────
# Store Getters (lazy initialization com cache)
# ──────────────────────────────────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_source_store():
    from app.bootstrap.dependencies_stores import create_source_store
    return create_source_store()


@lru_cache(maxsize=1)
def get_baseline_store():
    from app.bootstrap.dependencies_stores import create_baseline_store
    return create_baseline_store()


@lru_cache(maxsize=1)
def get_outbox_store():
    from app.bootstrap.dependencies_stores import create_outbox_store
    return create_outbox_store()


@lru_cache(maxsize=1)
def get_delivery_baseline_store():
    from app.bootstrap.dependencies_stores import create_delivery_baseline_store
    return create_delivery_baseline_store()


@lru_cache(maxsize=1)
def get_contact_audit_store():
    from app.bootstrap.dependencies_stores import create_contact_audit_store
    return create_contact_audit_store()


@lru_cache(maxsize=1)
def get_ignore_rule_store():
    from app.bootstrap.dependencies_stores import create_ignore_rule_store
    return create_ignore_rule_store()


# ──────────────────────────────────────────────────────────────────────────────
# Service Getters
# ──────────────────────────────────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_rate_limiter_registry():
    """Registry de rate limit (singleton); startup/shutdown no lifespan da API."""
    from app.bootstrap.dependencies_services import create_rate_limiter_registry
    from app.bootstrap.dependencies_stores import create_rate_limit_store
    return create_rate_limiter_registry(create_rate_limit_store())


@lru_cache(maxsize=1)
def get_outbox():
    from app.bootstrap.dependencies_services import create_outbox
    return create_outbox(get_outbox_store())


@lru_cache(maxsize=1)
def get_poll_scheduler():
    from app.bootstrap.dependencies_services import create_poll_scheduler
    return create_poll_scheduler(get_source_store())


@lru_cache(maxsize=1)
def get_change_detector():
    from app.bootstrap.dependencies_services import create_change_detector
    return create_change_detector(get_baseline_store())


def reset_singletons() -> None:
    """Limpa caches de getters e settings (uso em testes)."""
    from app.bootstrap.clients import create_async_redis_client, create_firestore_client

    for getter in (
        get_source_store,
        get_baseline_store,
        get_outbox_store,
        get_delivery_baseline_store,
        get_contact_audit_store,
        get_ignore_rule_store,
        get_rate_limiter_registry,
        get_outbox,
        get_poll_scheduler,
        get_change_detector,
        create_async_redis_client,
        create_firestore_client,
        get_base_settings,
        get_store_settings,
        get_firestore_settings,
        get_rate_limit_settings,
        get_polling_settings,
        get_change_detection_settings,
        get_outbox_settings,
        get_ignore_settings,
        get_verifier_settings,
    ):
        getter.cache_clear()

"""Testes de validação e carga das settings."""

from __future__ import annotations

import pytest

from config.settings import (
    BaseSettings,
    ChangeDetectionSettings,
    FirestoreSettings,
    IgnoreSettings,
    OutboxSettings,
    PollingSettings,
    RateLimitSettings,
    StoreSettings,
    VerifierSettings,
)
from config.settings.base.core import _load_base_from_env
from config.settings.infra.rate_limit import _load_rate_limit_from_env
from config.settings.sync.ignore import _load_ignore_from_env
from config.settings.sync.outbox import _load_outbox_from_env
from config.settings.sync.polling import _load_polling_from_env

DEV = BaseSettings(environment="development")
PROD = BaseSettings(environment="production", gcp_project="proj", redis_url="redis://r:6379")


class TestBaseSettings:
    def test_defaults_are_valid(self) -> None:
        assert BaseSettings().validate() == []
        assert DEV.is_development

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("prod", "production"), ("STAGE", "staging"), ("test", "test"), ("xpto", "development")],
    )
    def test_environment_aliases(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: str
    ) -> None:
        monkeypatch.setenv("ENVIRONMENT", raw)

        assert _load_base_from_env().environment == expected

    def test_empty_service_name(self) -> None:
        assert BaseSettings(service_name="").validate() == ["SERVICE_NAME não pode ser vazio"]


class TestStoreSettings:
    def test_memory_forbidden_outside_dev(self) -> None:
        assert StoreSettings(backend="memory").validate(DEV) == []
        assert StoreSettings(backend="memory").validate(PROD)

    def test_firestore_requires_project(self) -> None:
        errors = StoreSettings(backend="firestore").validate(BaseSettings())

        assert errors == ["STORE_BACKEND=firestore requer GCP_PROJECT configurado"]
        assert StoreSettings(backend="firestore").validate(PROD) == []


class TestRateLimitSettings:
    def test_redis_requires_url(self) -> None:
        errors = RateLimitSettings(backend="redis").validate(DEV)

        assert "RATE_LIMIT_BACKEND=redis requer REDIS_URL configurado" in errors

    def test_memory_forbidden_outside_dev(self) -> None:
        assert RateLimitSettings(backend="memory").validate(PROD)
        assert RateLimitSettings(backend="redis").validate(PROD) == []

    def test_limits_and_periods(self) -> None:
        errors = RateLimitSettings(source_limit=0, destination_period=0).validate(DEV)

        assert len(errors) == 2

    def test_source_bucket(self) -> None:
        assert RateLimitSettings().source_bucket("app1") == "rate:airtable:app1"

    def test_load_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RATE_LIMIT_BACKEND", "REDIS")
        monkeypatch.setenv("RATE_LIMIT_DESTINATION_LIMIT", "20")
        monkeypatch.setenv("RATE_LIMIT_SOURCE_PERIOD", "2.5")

        settings = _load_rate_limit_from_env()

        assert settings.backend == "redis"
        assert settings.destination_limit == 20
        assert settings.source_period == 2.5


class TestFirestoreSettings:
    def test_project_fallback(self) -> None:
        assert FirestoreSettings().validate("proj") == []
        assert FirestoreSettings().validate("") == [
            "FIRESTORE_PROJECT_ID ou GCP_PROJECT deve estar configurado"
        ]

    def test_collections_must_be_distinct(self) -> None:
        settings = FirestoreSettings(collection_audit="sync_sources")

        assert settings.validate("proj") == ["Collections do Firestore devem ser distintas"]


class TestSyncSettings:
    def test_defaults_are_valid(self) -> None:
        for settings in (
            PollingSettings(),
            ChangeDetectionSettings(),
            OutboxSettings(),
            IgnoreSettings(),
            VerifierSettings(),
        ):
            assert settings.validate() == []

    def test_polling_bounds(self) -> None:
        errors = PollingSettings(default_interval_seconds=0, default_jitter=1.5).validate()

        assert len(errors) == 2
        assert PollingSettings(default_interval_seconds=86_401).validate()

    def test_verifier_requires_two_runs(self) -> None:
        assert VerifierSettings(runs=1).validate()

    def test_ignore_timeout_positive(self) -> None:
        assert IgnoreSettings(regex_timeout_seconds=0).validate() == [
            "IGNORE_REGEX_TIMEOUT_SECONDS deve ser > 0"
        ]

    def test_ignore_fail_open_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IGNORE_FAIL_OPEN", "false")

        assert _load_ignore_from_env().fail_open is False

    def test_polling_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "120")
        monkeypatch.setenv("POLL_JITTER", "0.5")

        settings = _load_polling_from_env()

        assert settings.default_interval_seconds == 120
        assert settings.default_jitter == 0.5

    def test_claim_lease_positive(self) -> None:
        assert OutboxSettings(claim_lease_seconds=0).validate() == [
            "OUTBOX_CLAIM_LEASE_SECONDS deve ser >= 1"
        ]

    def test_outbox_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OUTBOX_CLAIM_LEASE_SECONDS", "600")
        monkeypatch.setenv("OUTBOX_NEW_CONTACT_USER_GROUP", "  ")

        settings = _load_outbox_from_env()

        assert settings.claim_lease_seconds == 600
        assert settings.new_contact_user_group == ""

"""Testes de correlation_id e métricas via log."""

from __future__ import annotations

import logging

import pytest

from app.observability import (
    correlation_scope,
    get_correlation_id,
    record_dispatch_outcome,
    record_latency,
)


class TestCorrelationScope:
    def test_generates_and_restores(self) -> None:
        assert get_correlation_id() == ""

        with correlation_scope() as correlation_id:
            assert len(correlation_id) == 32
            assert get_correlation_id() == correlation_id

        assert get_correlation_id() == ""

    def test_nested_keeps_explicit_id(self) -> None:
        with correlation_scope("outer"):
            with correlation_scope(get_correlation_id() or None) as inner:
                assert inner == "outer"
            assert get_correlation_id() == "outer"


class TestMetrics:
    def test_latency_uses_context_correlation(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="app.observability.metrics")

        with correlation_scope("abc"):
            record_latency("dispatcher", "drain", 12.3456)

        record = caplog.records[-1]
        assert record.message == "metric_latency"
        assert record.latency_ms == 12.35
        assert record.correlation_id == "abc"

    def test_dispatch_outcome_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="app.observability.metrics")

        record_dispatch_outcome("sent", envelope_count=2, field_count=3, correlation_id="x")

        record = caplog.records[-1]
        assert record.status == "sent"
        assert record.envelope_count == 2
        assert record.correlation_id == "x"

"""Testes de IgnoreRule e IgnoreMatcher."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from app.domain.ignore_rule import IgnoreRule, compile_pattern
from app.domain.source import SourceType
from app.services.ignore_matcher import IgnoreMatcher, exact_literal
from utils.errors import InvalidIgnorePatternError


def _rule(pattern: str) -> IgnoreRule:
    return IgnoreRule.create(SourceType.AIRTABLE, pattern)


class TestCompilePattern:
    def test_rejects_empty(self) -> None:
        with pytest.raises(InvalidIgnorePatternError):
            compile_pattern("")

    def test_rejects_too_long(self) -> None:
        with pytest.raises(InvalidIgnorePatternError) as exc_info:
            compile_pattern("a" * 201)

        assert exc_info.value.details["max_length"] == 200

    def test_accepts_max_length(self) -> None:
        assert compile_pattern("a" * 200) is not None

    def test_rejects_invalid_regex(self) -> None:
        with pytest.raises(InvalidIgnorePatternError):
            compile_pattern("app(")


class TestIgnoreRuleMatches:
    def test_search_semantics(self) -> None:
        """Sem âncoras o padrão casa em qualquer posição."""
        rule = _rule("test")

        assert rule.matches("apptest123") is True
        assert rule.matches("appprod") is False

    def test_none_never_matches(self) -> None:
        assert _rule(".*").matches(None) is False

    def test_timeout_fails_open(self, caplog: pytest.LogCaptureFixture) -> None:
        """Timeout: tratado como "não casa" e logado como fallback."""
        rule = _rule("app.*")
        rule.compiled = MagicMock()
        rule.compiled.search.side_effect = TimeoutError("regex timed out")

        with caplog.at_level(logging.WARNING):
            assert rule.matches("app1", timeout=0.001) is False

        assert any(r.message == "ignore_rule_match_failed" for r in caplog.records)
        fallback = [r for r in caplog.records if getattr(r, "fallback_used", False)]
        assert fallback
        assert fallback[0].levelno == logging.WARNING
        assert fallback[0].reason == "regex_timeout"

    def test_timeout_fail_closed(self) -> None:
        rule = _rule("app.*")
        rule.compiled = MagicMock()
        rule.compiled.search.side_effect = TimeoutError("regex timed out")

        assert rule.matches("app1", fail_open=False) is True

    def test_timeout_is_forwarded(self) -> None:
        rule = _rule("app")
        rule.compiled = MagicMock()
        rule.compiled.search.return_value = None

        rule.matches("x", timeout=0.5)

        rule.compiled.search.assert_called_once_with("x", timeout=0.5)

    def test_dict_roundtrip_keeps_id(self) -> None:
        rule = _rule("^app1$")

        restored = IgnoreRule.from_dict(rule.to_dict())

        assert restored.id == rule.id
        assert restored == rule


class TestExactLiteral:
    def test_plain_literal(self) -> None:
        assert exact_literal("^app123$") == "app123"

    def test_metacharacters_disable_fast_path(self) -> None:
        assert exact_literal("^app.*$") is None
        assert exact_literal("^a|b$") is None

    def test_unanchored(self) -> None:
        assert exact_literal("app123") is None
        assert exact_literal("^app123") is None


class TestIgnoreMatcher:
    def test_exact_and_regex_rules(self) -> None:
        matcher = IgnoreMatcher.for_rules([_rule("^app1$"), _rule("^test")])

        assert "app1" in matcher.exact
        assert len(matcher.patterns) == 1
        assert matcher.matches("app1") is True
        assert matcher.matches("testbase") is True
        assert matcher.matches("app10") is False
        assert matcher.matches(None) is False

    def test_no_rules_matches_nothing(self) -> None:
        assert IgnoreMatcher.for_rules([]).matches("anything") is False

    def test_matching_rules_deduplicated(self) -> None:
        exact = _rule("^app1$")
        broad = _rule("app")
        matcher = IgnoreMatcher.for_rules([exact, broad])

        found = matcher.matching_rules("app1")

        assert {rule.id for rule in found} == {exact.id, broad.id}
        assert len(found) == 2

    def test_failing_pattern_does_not_block_others(self) -> None:
        broken = _rule("slow")
        broken.compiled = MagicMock()
        broken.compiled.search.side_effect = TimeoutError()
        matcher = IgnoreMatcher.for_rules([broken, _rule("^app")])

        assert matcher.matches("app1") is True
        assert matcher.matches("slow-base") is False

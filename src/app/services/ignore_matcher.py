"""IgnoreMatcher: avaliação em lote das regras de ignore de um tipo de origem.

Padrões no formato ^literal$ sem metacaracteres viram lookup O(1);
os demais são avaliados um a um com timeout.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from app.domain.ignore_rule import DEFAULT_MATCH_TIMEOUT_SECONDS, IgnoreRule

_EXACT_PATTERN = re.compile(r"\A\^(.+)\$\Z")
_REGEX_SPECIAL_CHARS = re.compile(r"[.*+?^$|\\\[\]{}()]")


def exact_literal(pattern: str) -> str | None:
    """Extrai o literal de ^literal$ (None se houver metacaracteres)."""
    match = _EXACT_PATTERN.match(pattern)
    if match is None:
        return None
    literal = match.group(1)
    if _REGEX_SPECIAL_CHARS.search(literal):
        return None
    return literal


@dataclass(slots=True)
class IgnoreMatcher:
    exact: dict[str, list[IgnoreRule]] = field(default_factory=dict)
    patterns: list[IgnoreRule] = field(default_factory=list)
    timeout: float = DEFAULT_MATCH_TIMEOUT_SECONDS
    fail_open: bool = True

    @classmethod
    def for_rules(
        cls,
        rules: Iterable[IgnoreRule],
        *,
        timeout: float = DEFAULT_MATCH_TIMEOUT_SECONDS,
        fail_open: bool = True,
    ) -> IgnoreMatcher:
        matcher = cls(timeout=timeout, fail_open=fail_open)
        for rule in rules:
            literal = exact_literal(rule.pattern)
            if literal is None:
                matcher.patterns.append(rule)
            else:
                matcher.exact.setdefault(literal, []).append(rule)
        return matcher

    def matches(self, candidate: str | None) -> bool:
        """True se alguma regra casa com o candidato."""
        if candidate is None:
            return False
        value = str(candidate)
        if value in self.exact:
            return True
        return any(self._rule_matches(rule, value) for rule in self.patterns)

    def matching_rules(self, candidate: str | None) -> list[IgnoreRule]:
        """Todas as regras que casam com o candidato (sem repetição)."""
        if candidate is None:
            return []
        value = str(candidate)
        found = list(self.exact.get(value, []))
        found.extend(rule for rule in self.patterns if self._rule_matches(rule, value))
        unique: dict[str, IgnoreRule] = {rule.id: rule for rule in found}
        return list(unique.values())

    def _rule_matches(self, rule: IgnoreRule, value: str) -> bool:
        return rule.matches(value, timeout=self.timeout, fail_open=self.fail_open)

"""Testes da forma canônica de valores."""

from __future__ import annotations

from datetime import UTC, datetime

from app.domain.canonical import canonical_hash, canonical_json, canonicalize


class TestCanonicalize:
    """Testes de canonicalize/canonical_json."""

    def test_key_order_does_not_matter(self) -> None:
        """Mapas com mesmas chaves em ordens diferentes são iguais."""
        left = {"b": 1, "a": {"y": 2, "x": 3}}
        right = {"a": {"x": 3, "y": 2}, "b": 1}

        assert canonical_json(left) == canonical_json(right)
        assert canonical_hash(left) == canonical_hash(right)

    def test_list_order_is_preserved(self) -> None:
        """Listas mantêm a ordem: [1, 2] != [2, 1]."""
        assert canonical_json([1, 2]) != canonical_json([2, 1])

    def test_nested_lists_of_maps(self) -> None:
        value = [{"b": 1, "a": 2}, {"d": [{"z": 1, "y": 0}]}]

        assert canonicalize(value) == [{"a": 2, "b": 1}, {"d": [{"y": 0, "z": 1}]}]

    def test_non_string_keys_become_strings(self) -> None:
        assert canonicalize({1: "a", 2: "b"}) == {"1": "a", "2": "b"}

    def test_sets_are_sorted(self) -> None:
        """Conjuntos viram listas ordenadas (ordem de iteração irrelevante)."""
        assert canonicalize({"c", "a", "b"}) == ["a", "b", "c"]

    def test_tuples_become_lists(self) -> None:
        assert canonical_json((1, 2)) == canonical_json([1, 2])

    def test_scalars_unchanged(self) -> None:
        assert canonicalize(None) is None
        assert canonicalize("x") == "x"
        assert canonicalize(1.5) == 1.5

    def test_json_is_compact(self) -> None:
        assert canonical_json({"b": [1, 2], "a": None}) == '{"a":null,"b":[1,2]}'

    def test_non_ascii_preserved(self) -> None:
        assert canonical_json({"nome": "João"}) == '{"nome":"João"}'

    def test_datetime_serialized_without_error(self) -> None:
        """Valores não-JSON (datetime) são serializados via str."""
        moment = datetime(2024, 1, 1, tzinfo=UTC)

        assert canonical_json({"at": moment}) == canonical_json({"at": moment})
        assert str(moment) in canonical_json({"at": moment})

    def test_hash_differs_for_different_values(self) -> None:
        assert canonical_hash({"a": 1}) != canonical_hash({"a": 2})
        assert len(canonical_hash({"a": 1})) == 64

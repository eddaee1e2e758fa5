"""Testes do modelo Baseline."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from app.domain.baseline import Baseline, baseline_doc_id

T0 = datetime(2024, 1, 1, tzinfo=UTC)
T1 = T0 + timedelta(minutes=5)


class TestBaseline:
    def test_first_seen_stores_canonical_value(self) -> None:
        baseline = Baseline.first_seen("airtable:app1", "tbl/rec", "fld", {"b": 1, "a": 2}, T0)

        assert list(baseline.last_known_value) == ["a", "b"]
        assert baseline.first_seen_at == baseline.last_checked_at == T0
        assert baseline.checked_count == 1
        assert baseline.version == 0

    def test_checked_with_same_value_keeps_update_time(self) -> None:
        baseline = Baseline.first_seen("s", "r", "f", {"a": 1, "b": 2}, T0)

        checked = baseline.checked({"b": 2, "a": 1}, T1)

        assert checked.value_last_updated_at == T0
        assert checked.last_checked_at == T1
        assert checked.checked_count == 2
        assert checked.version == 1

    def test_checked_with_new_value_updates(self) -> None:
        baseline = Baseline.first_seen("s", "r", "f", "old", T0)

        checked = baseline.checked("new", T1)

        assert checked.last_known_value == "new"
        assert checked.value_last_updated_at == T1
        assert checked.first_seen_at == T0

    def test_differs_from(self) -> None:
        baseline = Baseline.first_seen("s", "r", "f", [1, 2], T0)

        assert baseline.differs_from([1, 2]) is False
        assert baseline.differs_from([2, 1]) is True
        assert baseline.differs_from(None) is True

    def test_doc_id_is_stable_and_path_safe(self) -> None:
        doc_id = baseline_doc_id("airtable:app1", "tbl/rec", "fld")

        assert doc_id == baseline_doc_id("airtable:app1", "tbl/rec", "fld")
        assert "/" not in doc_id
        assert doc_id != baseline_doc_id("airtable:app1", "tbl/rec", "fld2")

    def test_dict_roundtrip(self) -> None:
        baseline = Baseline.first_seen("s", "r", "f", {"x": 1}, T0).checked(2, T1)

        assert Baseline.from_dict(baseline.to_dict()) == baseline

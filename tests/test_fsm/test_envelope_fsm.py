"""
Testes do módulo FSM (status do envelope do outbox).

Cobre a tabela de transições, guards e o manager.
"""

import pytest

from fsm import (
    DEFAULT_INITIAL_STATUS,
    REQUEUEABLE_STATUSES,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    EnvelopeStatus,
    StatusTransition,
    TransitionResult,
    attempt_transition,
    evaluate_guards,
    get_valid_targets,
    is_terminal,
    is_transition_valid,
    is_valid_status,
    parse_status,
    require_transition,
    validate_transition_map,
)
from fsm.rules.guards import guard_same_status, guard_terminal_status
from utils.errors import InvalidTransitionError


class TestEnvelopeStatus:
    def test_terminal_and_initial_statuses(self) -> None:
        assert DEFAULT_INITIAL_STATUS == EnvelopeStatus.QUEUED
        assert TERMINAL_STATUSES == {
            EnvelopeStatus.SENT,
            EnvelopeStatus.IGNORED_NOOP,
            EnvelopeStatus.FAILED,
            EnvelopeStatus.PARTIALLY_SENT,
        }
        assert REQUEUEABLE_STATUSES <= TERMINAL_STATUSES
        assert not is_terminal(EnvelopeStatus.DISPATCHING)

    def test_parse_persisted_value(self) -> None:
        assert parse_status("partially_sent") == EnvelopeStatus.PARTIALLY_SENT
        assert is_valid_status(EnvelopeStatus.SENT)
        assert not is_valid_status("SENT")
        with pytest.raises(ValueError):
            parse_status("delivered")


class TestTransitionTable:
    def test_map_is_consistent(self) -> None:
        assert validate_transition_map() == []
        assert set(VALID_TRANSITIONS) == set(EnvelopeStatus)

    def test_queued_only_goes_to_dispatching(self) -> None:
        assert get_valid_targets(EnvelopeStatus.QUEUED) == {EnvelopeStatus.DISPATCHING}
        assert not is_transition_valid(EnvelopeStatus.QUEUED, EnvelopeStatus.SENT)

    def test_dispatching_can_be_released_to_queue(self) -> None:
        assert is_transition_valid(EnvelopeStatus.DISPATCHING, EnvelopeStatus.QUEUED)

    @pytest.mark.parametrize("target", sorted(TERMINAL_STATUSES))
    def test_dispatching_reaches_every_terminal(self, target: EnvelopeStatus) -> None:
        assert is_transition_valid(EnvelopeStatus.DISPATCHING, target)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
    def test_terminal_has_no_exit(self, terminal: EnvelopeStatus) -> None:
        for target in EnvelopeStatus:
            assert not is_transition_valid(terminal, target)


class TestGuards:
    def test_terminal_guard_denies_with_reason(self) -> None:
        result = guard_terminal_status(EnvelopeStatus.FAILED, EnvelopeStatus.QUEUED)

        assert result.allowed is False
        assert "FAILED" in result.reason

    def test_same_status_guard(self) -> None:
        assert not guard_same_status(EnvelopeStatus.QUEUED, EnvelopeStatus.QUEUED).allowed

    def test_evaluate_guards_allows_claim(self) -> None:
        assert evaluate_guards(EnvelopeStatus.QUEUED, EnvelopeStatus.DISPATCHING).allowed


class TestManager:
    def test_attempt_valid_transition(self) -> None:
        result = attempt_transition(
            "env-1", EnvelopeStatus.DISPATCHING, EnvelopeStatus.SENT, "dispatch_result"
        )

        assert result.success
        assert result.transition.to_log_dict()["to_status"] == "sent"

    def test_attempt_invalid_transition(self) -> None:
        result = attempt_transition(
            "env-1", EnvelopeStatus.QUEUED, EnvelopeStatus.FAILED, "dispatch_result"
        )

        assert not result.success
        assert result.transition is None
        assert "QUEUED" in result.error_reason

    def test_require_raises(self) -> None:
        with pytest.raises(InvalidTransitionError):
            require_transition("env-1", EnvelopeStatus.SENT, EnvelopeStatus.FAILED, "x")

    def test_types_validate_invariants(self) -> None:
        with pytest.raises(ValueError):
            StatusTransition("env-1", EnvelopeStatus.QUEUED, EnvelopeStatus.DISPATCHING, " ")
        with pytest.raises(ValueError):
            TransitionResult(success=True)

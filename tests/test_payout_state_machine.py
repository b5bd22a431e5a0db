import pytest

from app.payouts.state_machine import assert_confirmed_invariant, assert_transition, InvalidTransition


def test_valid_transitions():
    assert_transition("pending", "confirmed")
    assert_transition("pending", "failed")
    assert_transition("pending", "unknown")
    assert_transition("unknown", "confirmed")
    assert_transition("unknown", "failed")


def test_terminal_states_cannot_transition():
    with pytest.raises(InvalidTransition):
        assert_transition("confirmed", "failed")
    with pytest.raises(InvalidTransition):
        assert_transition("failed", "confirmed")


def test_confirmed_requires_gateway_ref():
    with pytest.raises(ValueError):
        assert_confirmed_invariant("confirmed", None)
    assert_confirmed_invariant("confirmed", "po_123")
    assert_confirmed_invariant("failed", None)

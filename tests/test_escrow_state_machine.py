import pytest

from app.errors import InvalidTransition
from app.escrow.state_machine import assert_captured_invariant, assert_transition
from app.pools.state_machine import assert_pool_transition, assert_round_transition


def test_hold_happy_path():
    assert_transition("authorized", "captured")
    assert_transition("captured", "released")


def test_hold_side_exits():
    assert_transition("authorized", "voided")
    assert_transition("authorized", "expired")


@pytest.mark.parametrize(
    "old,new",
    [
        ("authorized", "released"),
        ("captured", "voided"),
        ("released", "captured"),
        ("voided", "captured"),
        ("expired", "captured"),
    ],
)
def test_hold_illegal_transitions(old, new):
    with pytest.raises(InvalidTransition):
        assert_transition(old, new)


def test_captured_requires_capture_ref():
    with pytest.raises(ValueError):
        assert_captured_invariant("captured", "")


def test_round_cannot_leave_released():
    assert_round_transition("ready", "released")
    with pytest.raises(InvalidTransition):
        assert_round_transition("released", "collecting")
    with pytest.raises(InvalidTransition):
        assert_round_transition("collecting", "released")


def test_pool_lifecycle():
    assert_pool_transition("pending", "active")
    assert_pool_transition("active", "paused")
    assert_pool_transition("paused", "active")
    with pytest.raises(InvalidTransition):
        assert_pool_transition("completed", "active")
    with pytest.raises(InvalidTransition):
        assert_pool_transition("cancelled", "active")

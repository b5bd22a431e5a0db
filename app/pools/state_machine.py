# app/pools/state_machine.py
from app.errors import InvalidTransition


POOL_ALLOWED = {
    "pending": {"active", "cancelled"},
    "active": {"paused", "completed", "cancelled"},
    "paused": {"active", "completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

ROUND_ALLOWED = {
    # ready is recomputed whenever contributions change
    "collecting": {"ready", "cancelled"},
    "ready": {"collecting", "released", "cancelled"},
    "released": set(),
    "cancelled": set(),
}


def assert_pool_transition(old: str, new: str) -> None:
    if new not in POOL_ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal pool transition: {old} -> {new}", details={"from": old, "to": new})


def assert_round_transition(old: str, new: str) -> None:
    if old == new:
        return
    if new not in ROUND_ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal round transition: {old} -> {new}", details={"from": old, "to": new})

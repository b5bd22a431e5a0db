# app/escrow/state_machine.py
from app.errors import InvalidTransition


ALLOWED = {
    "authorized": {"captured", "voided", "expired"},
    "captured": {"released"},
    "released": set(),
    "voided": set(),
    "expired": set(),
}


def assert_transition(old: str, new: str) -> None:
    if new not in ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal escrow transition: {old} -> {new}")


def assert_captured_invariant(new_state: str, capture_ref: str | None) -> None:
    """
    Invariant: if a hold is captured, it MUST carry the gateway capture ref.
    """
    if new_state == "captured" and not capture_ref:
        raise ValueError("Invariant violation: state=captured requires capture_ref")

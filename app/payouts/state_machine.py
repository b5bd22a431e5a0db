# app/payouts/state_machine.py
from app.errors import InvalidTransition


ALLOWED = {
    "pending": {"confirmed", "failed", "unknown"},
    # unknown only leaves through operator reconciliation
    "unknown": {"confirmed", "failed"},
    "confirmed": set(),
    "failed": set(),
}


def assert_transition(old: str, new: str) -> None:
    if new not in ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal payout transition: {old} -> {new}")


def assert_confirmed_invariant(new_status: str, gateway_ref: str | None) -> None:
    """
    Invariant: if payout is confirmed, it MUST have gateway_ref.
    """
    if new_status == "confirmed" and not gateway_ref:
        raise ValueError("Invariant violation: status=confirmed requires gateway_ref")

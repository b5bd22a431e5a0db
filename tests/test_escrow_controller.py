from __future__ import annotations

import pytest

from app.errors import (
    AlreadyCaptured,
    ConsistencyViolation,
    GatewayAuthorizationFailed,
    HoldExpired,
    HoldNotFound,
    InvalidTransition,
    NoPayoutMethodConfigured,
    PayoutDeliveryFailed,
    RequiresManualReconciliation,
)
from app.escrow.controller import EscrowController
from app.gateway.mock import failed, unknown
from app.pools.model import PayoutMethod

METHOD = PayoutMethod(type="zelle", handle="m1@example.com")


@pytest.fixture
def escrow(repo, gateway, config, clock, sleeps):
    return EscrowController(repo, gateway, config, clock=clock, sleep=sleeps.append)


def _authorize(escrow, member="m2", cid=None, amount=5000):
    return escrow.authorize(
        pool_id="p1",
        round_number=1,
        member_id=member,
        contribution_id=cid or f"c-{member}",
        payer_ref=f"card-{member}",
        amount_cents=amount,
    )


def _release(escrow, hold_ids, *, method=METHOD, gross=10000, fee=0):
    return escrow.release_to_recipient(
        pool_id="p1",
        round_number=1,
        recipient_member_id="m1",
        payout_method=method,
        hold_ids=hold_ids,
        gross_amount_cents=gross,
        fee_cents=fee,
    )


# ---------------------------
# authorize
# ---------------------------

def test_authorize_creates_hold_with_deadline(escrow, repo, clock, config):
    hold = _authorize(escrow)
    assert hold.state == "authorized"
    assert hold.release_deadline == clock() + config.hold_window
    assert repo.load_hold(hold.id).gateway_ref.startswith("mock-authorize-")
    events = repo.list_escrow_events(hold.id)
    assert [(e.from_state, e.to_state) for e in events] == [(None, "authorized")]


def test_authorize_retries_transient_failures_with_backoff(escrow, gateway, sleeps):
    gateway.script("authorize", unknown(), failed("busy", http_status=503))
    hold = _authorize(escrow)

    assert hold.state == "authorized"
    assert gateway.count("authorize") == 3
    assert sleeps == [0, 0]
    # same idempotency key on every attempt
    assert {c["idempotency_key"] for c in gateway.calls} == {"authorize:c-m2"}


def test_authorize_backoff_doubles(repo, gateway, clock, config):
    delays = []
    escrow = EscrowController(repo, gateway, config.model_copy(update={"authorize_backoff_seconds": 1.5}), clock=clock, sleep=delays.append)
    gateway.script("authorize", unknown(), unknown())
    _authorize(escrow)
    assert delays == [1.5, 3.0]


def test_authorize_decline_is_not_retried(escrow, gateway):
    gateway.script("authorize", failed("Card declined", http_status=402))
    with pytest.raises(GatewayAuthorizationFailed) as exc:
        _authorize(escrow)
    assert gateway.count("authorize") == 1
    assert exc.value.details["attempts"] == 1


def test_authorize_gives_up_after_max_attempts(escrow, gateway):
    gateway.script("authorize", unknown(), unknown(), unknown())
    with pytest.raises(GatewayAuthorizationFailed) as exc:
        _authorize(escrow)
    assert gateway.count("authorize") == 3
    assert exc.value.details["gateway_status"] == "unknown"


# ---------------------------
# capture
# ---------------------------

def test_capture_is_idempotent(escrow, gateway):
    hold = _authorize(escrow)
    first = escrow.capture(hold.id)
    second = escrow.capture(hold.id)

    assert first.state == second.state == "captured"
    assert first.capture_ref == second.capture_ref
    assert gateway.count("capture") == 1


def test_capture_after_deadline_expires_hold(escrow, clock, repo, config):
    hold = _authorize(escrow)
    clock.advance(hours=config.escrow_hold_max_hours, seconds=1)

    with pytest.raises(HoldExpired):
        escrow.capture(hold.id)
    assert repo.load_hold(hold.id).state == "expired"

    with pytest.raises(HoldExpired):
        escrow.capture(hold.id)


def test_capture_unknown_hold(escrow):
    with pytest.raises(HoldNotFound):
        escrow.capture("nope")


def test_capture_failure_requires_reconciliation_and_is_not_retried(escrow, gateway, repo):
    hold = _authorize(escrow)
    gateway.script("capture", unknown("read timeout"))

    with pytest.raises(RequiresManualReconciliation) as exc:
        escrow.capture(hold.id)
    assert exc.value.details["hold_id"] == hold.id
    assert exc.value.details["hold_state"] == "authorized"

    stored = repo.load_hold(hold.id)
    assert stored.needs_reconciliation
    with pytest.raises(RequiresManualReconciliation):
        escrow.capture(hold.id)
    assert gateway.count("capture") == 1


# ---------------------------
# void
# ---------------------------

def test_void_returns_funds(escrow, repo):
    hold = _authorize(escrow)
    voided = escrow.void(hold.id)
    assert voided.state == "voided"
    assert voided.voided_at is not None
    assert escrow.void(hold.id).state == "voided"


def test_void_after_capture_rejected(escrow):
    hold = _authorize(escrow)
    escrow.capture(hold.id)
    with pytest.raises(AlreadyCaptured):
        escrow.void(hold.id)


def test_expire_stale_sweeps_only_overdue(escrow, clock, config):
    old = _authorize(escrow, member="m2")
    clock.advance(hours=config.escrow_hold_max_hours - 1)
    fresh = _authorize(escrow, member="m3")
    clock.advance(hours=2)

    expired = escrow.expire_stale("p1", 1)
    assert [h.id for h in expired] == [old.id]
    assert fresh.id not in {h.id for h in expired}


# ---------------------------
# release
# ---------------------------

def test_release_pays_net_once_and_releases_holds(escrow, gateway, repo):
    holds = [_authorize(escrow, member=m) for m in ("m1", "m2")]
    for h in holds:
        escrow.capture(h.id)

    record = _release(escrow, [h.id for h in holds], fee=250)

    assert record.status == "confirmed"
    assert record.net_amount_cents == 9750
    assert record.id == "p1:r1:a1"
    payout_calls = [c for c in gateway.calls if c["op"] == "payout"]
    assert len(payout_calls) == 1
    assert payout_calls[0]["amount_cents"] == 9750
    assert payout_calls[0]["idempotency_key"] == record.id
    assert {repo.load_hold(h.id).state for h in holds} == {"released"}


def test_release_without_payout_method(escrow):
    hold = _authorize(escrow)
    escrow.capture(hold.id)
    with pytest.raises(NoPayoutMethodConfigured):
        _release(escrow, [hold.id], method=None)


def test_release_requires_captured_holds(escrow):
    hold = _authorize(escrow)
    with pytest.raises(InvalidTransition):
        _release(escrow, [hold.id])


def test_release_timeout_is_never_retried_blindly(escrow, gateway, repo):
    hold = _authorize(escrow)
    escrow.capture(hold.id)
    gateway.script("payout", unknown())

    with pytest.raises(RequiresManualReconciliation) as exc:
        _release(escrow, [hold.id])
    assert exc.value.details["payout_status"] == "unknown"
    assert exc.value.details["holds"] == {hold.id: "captured"}

    with pytest.raises(RequiresManualReconciliation):
        _release(escrow, [hold.id])
    assert gateway.count("payout") == 1


def test_pending_marker_blocks_retry(escrow, gateway, repo):
    hold = _authorize(escrow)
    escrow.capture(hold.id)

    # simulate a crash between marker and gateway confirmation
    real_payout = gateway.payout

    def crash(*args, **kwargs):
        raise RuntimeError("process killed")

    gateway.payout = crash
    with pytest.raises(RuntimeError):
        _release(escrow, [hold.id])
    gateway.payout = real_payout

    assert repo.load_payout("p1", 1).status == "pending"
    with pytest.raises(RequiresManualReconciliation):
        _release(escrow, [hold.id])
    assert gateway.count("payout") == 0


def test_failed_release_then_abandon_allows_new_attempt(escrow, gateway, repo):
    hold = _authorize(escrow)
    escrow.capture(hold.id)
    gateway.script("payout", failed("Recipient handle rejected", http_status=422))

    with pytest.raises(PayoutDeliveryFailed):
        _release(escrow, [hold.id])
    record = repo.load_payout("p1", 1)
    assert record.status == "failed"

    with pytest.raises(RequiresManualReconciliation):
        _release(escrow, [hold.id])

    escrow.abandon_release(record, operator="op-ana")
    second = _release(escrow, [hold.id])
    assert second.status == "confirmed"
    assert second.attempt == 2
    assert second.id == "p1:r1:a2"


def test_confirmed_payout_cannot_be_released_again(escrow, repo):
    hold = _authorize(escrow)
    escrow.capture(hold.id)
    _release(escrow, [hold.id])
    with pytest.raises(ConsistencyViolation):
        _release(escrow, [])


def test_confirm_release_marks_captured_holds_released(escrow, gateway, repo):
    hold = _authorize(escrow)
    escrow.capture(hold.id)
    gateway.script("payout", unknown())
    with pytest.raises(RequiresManualReconciliation):
        _release(escrow, [hold.id])

    record = escrow.confirm_release(repo.load_payout("p1", 1), gateway_ref="po_manual_1", operator="op-ana")
    assert record.status == "confirmed"
    assert record.resolved_by == "op-ana"
    assert repo.load_hold(hold.id).state == "released"

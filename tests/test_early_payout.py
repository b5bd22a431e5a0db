from __future__ import annotations

from datetime import timedelta

from app.gateway.mock import failed, unknown
from app.verification import TotpCodeVerifier
from conftest import START_DATE, contribute_all, make_members


def _eligibility(manager, pid):
    res = manager.check_early_payout_eligibility(pid)
    assert res.ok, res.error
    return res.data["eligibility"]


def test_three_of_four_paid_is_not_eligible(manager, make_pool):
    pid = make_pool()
    contribute_all(manager, pid, skip=("m4",))

    e = _eligibility(manager, pid)
    assert e["allowed"] is False
    assert e["missing_contributions"] == ["m4"]
    assert e["reason"] == "Waiting for 1 contribution(s)"
    assert e["payout_amount_cents"] == 20000


def test_recipient_without_payout_method_is_not_eligible(manager, make_pool):
    members = make_members(4)
    members[0].payout_method = None
    pid = make_pool(members=members)
    contribute_all(manager, pid)

    e = _eligibility(manager, pid)
    assert e["allowed"] is False
    assert e["recipient_connect_status"] == "no_payout_method"
    assert e["missing_contributions"] == []


def test_no_contributions_yet(manager, make_pool):
    pid = make_pool()
    e = _eligibility(manager, pid)
    assert e["allowed"] is False
    assert e["reason"] == "No contributions received yet"


def test_escrowed_contributions_listed_as_processing(manager, make_pool):
    pid = make_pool()
    assert manager.record_contribution(pid, "m1", 5000, payer_ref="card-m1").ok
    assert manager.record_contribution(pid, "m2", 5000, payer_ref="card-m2").ok
    assert manager.record_contribution(pid, "m3", 5000).ok

    e = _eligibility(manager, pid)
    assert e["processing_contributions"] == ["m1", "m2"]
    assert e["missing_contributions"] == ["m4"]

    status = manager.get_round_status(pid)
    assert status.data["processing_contributors"] == ["m1", "m2"]


def test_not_eligible_once_scheduled_date_reached(manager, make_pool, clock):
    pid = make_pool()
    contribute_all(manager, pid)
    clock.on(START_DATE)

    e = _eligibility(manager, pid)
    assert e["allowed"] is False
    assert "Scheduled payout date reached" in e["reason"]


def test_paused_pool_is_not_eligible(manager, make_pool):
    pid = make_pool()
    contribute_all(manager, pid)
    assert manager.pause_pool(pid).ok

    e = _eligibility(manager, pid)
    assert e["allowed"] is False
    assert e["reason"] == "Pool is paused"


def test_early_payout_releases_and_keeps_later_dates(manager, make_pool, gateway, repo, notifications):
    pid = make_pool()
    contribute_all(manager, pid)
    assert _eligibility(manager, pid)["allowed"] is True

    res = manager.initiate_early_payout(pid, requested_by="op-ana", reason="medical bill")
    assert res.ok, res.error
    assert res.data["request"]["outcome"] == "approved"
    assert res.data["payout"]["early_payout"] is True
    assert gateway.count("payout") == 1

    status = manager.get_round_status(pid).data
    assert status["round_number"] == 2
    assert status["recipient_member_id"] == "m2"
    # round 2 keeps its weekly date, not shifted by the early release
    assert status["scheduled_payout_date"] == START_DATE + timedelta(days=7)

    r1 = manager.get_round_status(pid, 1).data
    assert r1["payout_processed"] is True
    assert r1["early_payout"] is True

    requests = repo.list_early_payout_requests(pid)
    assert [r.outcome for r in requests] == ["approved"]
    assert notifications.of("payout_released")[0]["early_payout"] is True


def test_denied_request_is_recorded_and_notified(manager, make_pool, gateway, repo, notifications):
    pid = make_pool()
    contribute_all(manager, pid, skip=("m3",))

    res = manager.initiate_early_payout(pid, requested_by="op-ana", reason="rent")

    assert not res.ok
    assert res.error_code == "EARLY_PAYOUT_NOT_ALLOWED"
    assert res.error["category"] == "policy"
    assert res.error["details"]["missing_contributions"] == ["m3"]
    assert gateway.count("payout") == 0

    [request] = repo.list_early_payout_requests(pid)
    assert request.outcome == "denied"
    assert request.denial_reason == "Waiting for 1 contribution(s)"
    assert res.error["details"]["request_id"] == request.id

    [denied] = notifications.of("early_payout_denied")
    assert denied["requested_by"] == "op-ana"


def test_confirmation_code_required_and_checked(make_manager, make_pool, gateway):
    verifier = TotpCodeVerifier("operator-secret", clock=lambda: 1_767_225_600.0)
    guarded = make_manager(verifier=verifier)
    pid = make_pool()
    contribute_all(guarded, pid)

    missing = guarded.initiate_early_payout(pid, requested_by="op-ana", reason="x")
    assert missing.error_code == "CONFIRMATION_REQUIRED"

    # another operator's code does not work for op-ana
    other = verifier.code_for("op-luis")
    wrong = guarded.initiate_early_payout(pid, requested_by="op-ana", reason="x", confirmation_code=other)
    assert wrong.error_code == "CONFIRMATION_INVALID"
    assert gateway.count("payout") == 0

    ok = guarded.initiate_early_payout(
        pid, requested_by="op-ana", reason="x", confirmation_code=verifier.code_for("op-ana")
    )
    assert ok.ok, ok.error


def test_unknown_gateway_outcome_blocks_scheduled_release(manager, make_pool, gateway, clock):
    pid = make_pool()
    contribute_all(manager, pid)
    gateway.script("payout", unknown())

    res = manager.initiate_early_payout(pid, requested_by="op-ana", reason="travel")
    assert res.error_code == "REQUIRES_MANUAL_RECONCILIATION"

    status = manager.get_round_status(pid).data
    assert status["early_payout"] is True
    assert status["payout_record_status"] == "unknown"
    assert status["decision"]["reason"] == "Superseded by early payout"

    clock.on(START_DATE)
    again = manager.trigger_scheduled_payout(pid)
    assert again.error_code == "REQUIRES_MANUAL_RECONCILIATION"
    assert gateway.count("payout") == 1

    resolved = manager.resolve_payout(pid, 1, confirmed=True, operator="op-ana", gateway_ref="po_bank_77")
    assert resolved.ok, resolved.error
    assert resolved.data["payout"]["early_payout"] is True
    assert manager.get_round_status(pid).data["round_number"] == 2


def test_abandoned_early_attempt_returns_round_to_schedule(manager, make_pool, gateway, clock):
    pid = make_pool()
    contribute_all(manager, pid)
    gateway.script("payout", failed("Recipient handle rejected", http_status=422))

    res = manager.initiate_early_payout(pid, requested_by="op-ana", reason="travel")
    assert res.error_code == "PAYOUT_DELIVERY_FAILED"

    abandoned = manager.resolve_payout(pid, 1, confirmed=False, operator="op-ana")
    assert abandoned.ok, abandoned.error
    assert manager.get_round_status(pid).data["early_payout"] is False

    clock.on(START_DATE)
    paid = manager.trigger_scheduled_payout(pid)
    assert paid.ok, paid.error
    assert paid.data["payout"]["payout_id"] == f"{pid}:r1:a2"
    assert paid.data["payout"]["early_payout"] is False

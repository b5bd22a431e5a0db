from __future__ import annotations

from datetime import timedelta

from app.gateway.mock import unknown
from conftest import START_DATE, contribute_all
from services.reconcile import run_reconcile


def _categories(report):
    return [i["category"] for i in report["items"]]


def test_clean_engine_reports_nothing(manager, make_pool, clock):
    pid = make_pool()
    contribute_all(manager, pid)
    clock.on(START_DATE)
    assert manager.trigger_scheduled_payout(pid).ok

    report = run_reconcile(manager.repository, now=clock())
    assert report["items"] == []
    assert report["summary"]["pools_checked"] == 1


def test_unknown_payout_is_flagged(manager, make_pool, gateway, clock):
    pid = make_pool()
    contribute_all(manager, pid)
    gateway.script("payout", unknown("read timeout"))
    clock.on(START_DATE)
    assert manager.trigger_scheduled_payout(pid).error_code == "REQUIRES_MANUAL_RECONCILIATION"

    report = run_reconcile(manager.repository, now=clock())
    [item] = report["items"]
    assert item["category"] == "payout_unsettled"
    assert item["payout_status"] == "unknown"
    assert item["payout_id"] == f"{pid}:r1:a1"
    assert item["last_error"] == "read timeout"


def test_abandoned_failure_is_not_flagged(manager, make_pool, gateway, clock):
    pid = make_pool()
    contribute_all(manager, pid)
    gateway.script("payout", unknown())
    clock.on(START_DATE)
    manager.trigger_scheduled_payout(pid)
    assert manager.resolve_payout(pid, 1, confirmed=False, operator="op-ana").ok

    report = run_reconcile(manager.repository, now=clock())
    assert report["summary"]["payout_unsettled"] == 0


def test_overdue_and_unresolved_holds(manager, make_pool, gateway, clock, config):
    pid = make_pool()
    contribute_all(manager, pid, escrow=True, skip=("m3", "m4"))
    gateway.script("void", unknown())

    later = clock() + timedelta(hours=config.escrow_hold_max_hours + 1)
    report = run_reconcile(manager.repository, now=later)
    assert report["summary"]["hold_overdue"] == 2

    manager.cancel_pool(pid)
    report = run_reconcile(manager.repository, now=clock())
    assert _categories(report) == ["hold_needs_reconcile"]


def test_halted_round_is_flagged(manager, make_pool, repo, clock):
    pid = make_pool()
    contribute_all(manager, pid)
    rnd = repo.load_round(pid, 1)
    rnd.recipient_member_id = "m4"
    repo.save_round(rnd)
    clock.on(START_DATE)
    assert manager.trigger_scheduled_payout(pid).error_code == "CONSISTENCY_VIOLATION"

    report = run_reconcile(manager.repository, now=clock())
    [item] = report["items"]
    assert item["category"] == "round_halted"
    assert item["reason"] == "Round recipient does not match rotation order"

from __future__ import annotations

import pytest

from app.gateway.mock import failed
from app.workers import payout_worker
from conftest import START_DATE, contribute_all


def test_worker_releases_due_rounds_only(manager, make_pool, clock, gateway):
    due = make_pool(pool_id="due")
    waiting = make_pool(pool_id="waiting")
    make_pool(pool_id="draft", start=False)
    contribute_all(manager, due)
    contribute_all(manager, waiting, skip=("m2",))
    clock.on(START_DATE)

    stats = payout_worker.process_once(manager)

    assert stats["pools"] == 2
    assert stats["payouts_released"] == 1
    assert stats["payouts_skipped"] == 1
    assert stats["payouts_failed"] == 0
    assert gateway.count("payout") == 1
    assert manager.get_round_status(due).data["current_round"] == 2
    assert manager.get_round_status(waiting).data["current_round"] == 1


def test_worker_skips_rounds_not_yet_due(manager, make_pool, gateway):
    pid = make_pool()
    contribute_all(manager, pid)

    stats = payout_worker.process_once(manager)
    assert stats["payouts_skipped"] == 1
    assert gateway.count("payout") == 0


def test_worker_counts_failures_and_keeps_going(manager, make_pool, clock, gateway):
    first = make_pool(pool_id="a")
    second = make_pool(pool_id="b")
    contribute_all(manager, first)
    contribute_all(manager, second)
    clock.on(START_DATE)
    gateway.script("payout", failed("Recipient handle rejected", http_status=422))

    stats = payout_worker.process_once(manager)
    assert stats["payouts_failed"] == 1
    assert stats["payouts_released"] == 1

    # failed attempt is not retried until an operator resolves it
    again = payout_worker.process_once(manager)
    assert again["payouts_released"] == 0
    assert gateway.count("payout") == 2


def test_worker_expires_stale_holds(manager, make_pool, clock, config):
    pid = make_pool()
    contribute_all(manager, pid, escrow=True, skip=("m4",))
    clock.advance(hours=config.escrow_hold_max_hours + 1)

    stats = payout_worker.process_once(manager)
    assert stats["holds_expired"] == 3
    assert manager.get_round_status(pid).data["missing_contributors"] == ["m1", "m2", "m3", "m4"]


def test_worker_finishes_an_interrupted_round_advance(manager, make_pool, clock, gateway, repo, monkeypatch):
    pid = make_pool()
    contribute_all(manager, pid)
    clock.on(START_DATE)

    def db_down(pool):
        raise RuntimeError("db down")

    real_save_pool = repo.save_pool
    monkeypatch.setattr(repo, "save_pool", db_down)
    with pytest.raises(RuntimeError):
        manager.trigger_scheduled_payout(pid)
    monkeypatch.setattr(repo, "save_pool", real_save_pool)
    assert repo.load_pool(pid).current_round == 1

    stats = payout_worker.process_once(manager)
    assert stats["payouts_failed"] == 0
    assert repo.load_pool(pid).current_round == 2
    assert gateway.count("payout") == 1

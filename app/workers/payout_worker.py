# app/workers/payout_worker.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict

from app.pools.manager import PoolStateManager

logger = logging.getLogger("tanda.worker")

# scheduled-payout failures the worker just retries on its next pass
RETRY_NEXT_PASS = {"PAYOUT_NOT_DUE", "CONTRIBUTIONS_INCOMPLETE", "NO_PAYOUT_METHOD", "HOLD_EXPIRED"}


def process_once(manager: PoolStateManager) -> Dict[str, Any]:
    """
    One sweep over active pools:
      1) expire authorized holds past their deadline
      2) fire the scheduled payout of every due round

    Each pool is independent; a failure in one never stops the sweep.
    """
    stats = {"pools": 0, "holds_expired": 0, "payouts_released": 0, "payouts_skipped": 0, "payouts_failed": 0}
    repo = manager.repository

    for pool_id in repo.list_pool_ids(status="active"):
        stats["pools"] += 1

        expired = manager.expire_stale_holds(pool_id)
        if expired.ok:
            stats["holds_expired"] += len(expired.data["expired_holds"])

        status = manager.get_round_status(pool_id)
        if not status.ok:
            continue
        decision = status.data["decision"] or {}
        # a processed current round means the pool advance never landed; the trigger finishes it
        if decision.get("kind") not in ("ready_to_release", "already_processed"):
            stats["payouts_skipped"] += 1
            continue

        result = manager.trigger_scheduled_payout(pool_id)
        if result.ok:
            if not result.data.get("already_processed"):
                stats["payouts_released"] += 1
        elif result.error_code in RETRY_NEXT_PASS:
            stats["payouts_skipped"] += 1
        else:
            stats["payouts_failed"] += 1
            logger.error(
                "scheduled payout failed pool=%s code=%s details=%s",
                pool_id, result.error_code, result.error.get("details"),
            )

    logger.info(
        "worker pass pools=%s holds_expired=%s released=%s skipped=%s failed=%s",
        stats["pools"], stats["holds_expired"], stats["payouts_released"],
        stats["payouts_skipped"], stats["payouts_failed"],
    )
    return stats


def run_forever(manager: PoolStateManager, *, poll_seconds: int = 5) -> None:
    logger.info("payout worker starting; poll=%ss", poll_seconds)
    while True:
        try:
            process_once(manager)
        except KeyboardInterrupt:
            logger.info("payout worker exiting")
            raise
        except Exception:
            logger.exception("payout worker pass failed")
        time.sleep(poll_seconds)

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from app.repository.base import Repository

logger = logging.getLogger("tanda.reconcile")

UNSETTLED_PAYOUT_STATUSES = ("pending", "unknown", "failed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def run_reconcile(repository: Repository, *, now: datetime | None = None) -> dict[str, Any]:
    """
    Read-only sweep of everything an operator has to settle by hand:

      payout_unsettled     release attempts without a confirmed/abandoned outcome
      hold_needs_reconcile capture/void outcome unknown at the gateway
      hold_overdue         authorized holds past their deadline, not yet swept
      round_halted         rounds stopped by a consistency violation
      captured_on_cancelled captured funds on a cancelled round
    """
    run_at = now or _utcnow()
    items: list[dict[str, Any]] = []
    summary = {
        "payout_unsettled": 0,
        "hold_needs_reconcile": 0,
        "hold_overdue": 0,
        "round_halted": 0,
        "captured_on_cancelled": 0,
        "pools_checked": 0,
    }

    for record in repository.list_payouts(statuses=UNSETTLED_PAYOUT_STATUSES):
        # failed + resolved means an operator already abandoned it
        if record.status == "failed" and record.resolved_at is not None:
            continue
        summary["payout_unsettled"] += 1
        items.append(
            {
                "category": "payout_unsettled",
                "payout_id": record.id,
                "pool_id": record.pool_id,
                "round_number": record.round_number,
                "payout_status": record.status,
                "net_amount_cents": record.net_amount_cents,
                "last_error": record.last_error,
            }
        )

    for pool_id in repository.list_pool_ids():
        summary["pools_checked"] += 1
        cancelled_rounds = set()
        for rnd in repository.list_rounds(pool_id):
            if rnd.status == "cancelled":
                cancelled_rounds.add(rnd.number)
            if rnd.halted_reason:
                summary["round_halted"] += 1
                items.append(
                    {
                        "category": "round_halted",
                        "pool_id": pool_id,
                        "round_number": rnd.number,
                        "reason": rnd.halted_reason,
                    }
                )

        for hold in repository.list_holds(pool_id):
            base = {
                "pool_id": pool_id,
                "round_number": hold.round_number,
                "hold_id": hold.id,
                "hold_state": hold.state,
                "member_id": hold.member_id,
            }
            if hold.needs_reconciliation:
                summary["hold_needs_reconcile"] += 1
                items.append({"category": "hold_needs_reconcile", **base, "last_error": hold.last_error})
            elif hold.state == "authorized" and run_at > hold.release_deadline:
                summary["hold_overdue"] += 1
                items.append({"category": "hold_overdue", **base, "deadline": hold.release_deadline.isoformat()})
            if hold.state == "captured" and hold.round_number in cancelled_rounds:
                summary["captured_on_cancelled"] += 1
                items.append({"category": "captured_on_cancelled", **base, "amount_cents": hold.amount_cents})

    flagged = sum(v for k, v in summary.items() if k != "pools_checked")
    if flagged:
        logger.warning("reconcile found %s item(s): %s", flagged, summary)

    return {"run_at": run_at.isoformat(), "summary": summary, "items": items}

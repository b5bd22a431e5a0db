# app/payouts/scheduler.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from app.config import EngineConfig
from app.errors import (
    ConsistencyViolation,
    ContributionsIncomplete,
    RoundHalted,
)
from app.escrow.controller import EscrowController
from app.payouts.model import (
    AlreadyProcessed,
    NotReady,
    PayoutDecision,
    PayoutRecord,
    PayoutResult,
    ReadyToRelease,
)
from app.pools.contributions import ContributionTracker
from app.pools.model import Pool, Round, utcnow
from app.pools.rotation import recipient_for
from app.repository.base import Repository

logger = logging.getLogger("tanda.payouts")


class PayoutScheduler:
    """
    Decides when a round may pay out and moves the money exactly once.

    trigger_payout does not touch pool/round state: the caller
    (PoolStateManager) holds the round scope and applies the result.
    """

    def __init__(
        self,
        tracker: ContributionTracker,
        escrow: EscrowController,
        config: EngineConfig,
        repository: Repository,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._tracker = tracker
        self._escrow = escrow
        self._config = config
        self._repo = repository
        self._clock = clock

    def evaluate_round(self, pool: Pool, rnd: Round) -> PayoutDecision:
        if rnd.payout_processed:
            return AlreadyProcessed(result=rnd.payout_result)

        if rnd.early_payout:
            return NotReady(missing_contributors=(), reason="Superseded by early payout")
        if rnd.status == "cancelled":
            return NotReady(missing_contributors=(), reason="Round cancelled")
        if rnd.halted_reason:
            return NotReady(missing_contributors=(), reason=f"Round halted: {rnd.halted_reason}")

        missing = self._tracker.missing_contributors(pool, rnd)
        if missing:
            return NotReady(missing_contributors=tuple(missing))

        return ReadyToRelease(recipient_member_id=rnd.recipient_member_id, amount_cents=rnd.payout_amount_cents)

    def fee_for(self, rnd: Round) -> int:
        return self._config.platform_fee_for(rnd.payout_amount_cents)

    def trigger_payout(self, pool: Pool, rnd: Round, *, early: bool = False) -> PayoutResult:
        """Must run inside the round scope."""
        if rnd.payout_processed:
            if rnd.payout_result is None:
                raise ConsistencyViolation(
                    "Round is marked processed but has no payout result",
                    details={"pool_id": pool.id, "round_number": rnd.number},
                )
            return rnd.payout_result

        ctx = {"pool_id": pool.id, "round_number": rnd.number}
        if rnd.halted_reason:
            raise RoundHalted(f"Round is halted: {rnd.halted_reason}", details=ctx)

        expected = recipient_for(pool.members, rnd.number)
        if expected != rnd.recipient_member_id:
            raise ConsistencyViolation(
                "Round recipient does not match rotation order",
                details={**ctx, "stored": rnd.recipient_member_id, "expected": expected},
            )

        # a confirmed record with an unprocessed round means we stopped after the money moved
        existing = self._repo.load_payout(pool.id, rnd.number)
        if existing is not None and existing.status == "confirmed":
            logger.warning(
                "payout already confirmed, resuming pool=%s round=%s payout=%s",
                pool.id, rnd.number, existing.id,
            )
            return self.result_from_record(existing, early=early)

        missing = self._tracker.missing_contributors(pool, rnd)
        if missing:
            raise ContributionsIncomplete(
                "Not all contributions have been received",
                details={**ctx, "missing_contributors": missing},
            )

        live = self._tracker.live_contributions(pool.id, rnd.number)
        hold_ids = [c.escrow_hold_id for c in live.values() if c.escrow_hold_id]
        for hold_id in hold_ids:
            self._escrow.capture(hold_id)

        collected = sum(c.amount_cents for c in live.values())
        if collected != rnd.payout_amount_cents:
            raise ConsistencyViolation(
                "Collected amount does not match payout amount",
                details={**ctx, "collected_cents": collected, "payout_amount_cents": rnd.payout_amount_cents},
            )

        fee = self.fee_for(rnd)
        recipient = pool.member(rnd.recipient_member_id)
        record = self._escrow.release_to_recipient(
            pool_id=pool.id,
            round_number=rnd.number,
            recipient_member_id=rnd.recipient_member_id,
            payout_method=recipient.payout_method if recipient else None,
            hold_ids=hold_ids,
            gross_amount_cents=rnd.payout_amount_cents,
            fee_cents=fee,
        )

        logger.info(
            "payout released pool=%s round=%s recipient=%s payout=%s net_cents=%s early=%s",
            pool.id, rnd.number, rnd.recipient_member_id, record.id, record.net_amount_cents, early,
        )
        return self.result_from_record(record, early=early)

    def result_from_record(self, record: PayoutRecord, *, early: bool, released_at: Optional[datetime] = None) -> PayoutResult:
        return PayoutResult(
            pool_id=record.pool_id,
            round_number=record.round_number,
            recipient_member_id=record.recipient_member_id,
            gross_amount_cents=record.gross_amount_cents,
            fee_cents=record.fee_cents,
            net_amount_cents=record.net_amount_cents,
            payout_id=record.id,
            gateway_ref=record.gateway_ref,
            early_payout=early,
            released_at=released_at or self._clock(),
        )

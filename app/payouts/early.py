# app/payouts/early.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Literal, Optional

from app.errors import ConfirmationInvalid, ConfirmationRequired, EarlyPayoutNotAllowed
from app.notifications import EARLY_PAYOUT_DENIED, NotificationSink, safe_notify
from app.payouts.model import EarlyPayoutRequest, PayoutResult
from app.payouts.scheduler import PayoutScheduler
from app.pools.contributions import ContributionTracker
from app.pools.model import Pool, Round, utcnow
from app.repository.base import Repository
from app.verification import CodeVerifier

logger = logging.getLogger("tanda.payouts")

RecipientConnectStatus = Literal["connected", "no_payout_method"]


@dataclass(frozen=True)
class EarlyPayoutStatus:
    allowed: bool
    reason: str
    missing_contributions: list[str] = field(default_factory=list)
    # escrowed and authorized, captured only when the payout runs
    processing_contributions: list[str] = field(default_factory=list)
    recipient_connect_status: RecipientConnectStatus = "connected"
    payout_amount_cents: int = 0
    scheduled_payout_date: Optional[date] = None
    current_round: int = 1


class EarlyPayoutWorkflow:
    """
    Operator-invoked release ahead of the scheduled date.

    Only the timing changes: eligibility is the scheduler's own readiness
    plus a payout method on the recipient, and the release itself goes
    through PayoutScheduler.trigger_payout. Later rounds keep their dates.
    """

    def __init__(
        self,
        scheduler: PayoutScheduler,
        tracker: ContributionTracker,
        repository: Repository,
        *,
        verifier: Optional[CodeVerifier] = None,
        notifications: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._scheduler = scheduler
        self._tracker = tracker
        self._repo = repository
        self._verifier = verifier
        self._notifications = notifications
        self._clock = clock

    def check_eligibility(self, pool: Pool, rnd: Round) -> EarlyPayoutStatus:
        recipient = pool.member(rnd.recipient_member_id)
        connect: RecipientConnectStatus = (
            "connected" if recipient is not None and recipient.payout_method is not None else "no_payout_method"
        )
        missing = self._tracker.missing_contributors(pool, rnd)
        received = len(pool.members) - len(missing)
        processing = self._tracker.processing_contributors(pool, rnd)

        def status(allowed: bool, reason: str) -> EarlyPayoutStatus:
            return EarlyPayoutStatus(
                allowed=allowed,
                reason=reason,
                missing_contributions=missing,
                processing_contributions=processing,
                recipient_connect_status=connect,
                payout_amount_cents=rnd.payout_amount_cents,
                scheduled_payout_date=rnd.scheduled_payout_date,
                current_round=rnd.number,
            )

        if rnd.payout_processed:
            return status(False, "Payout already processed for this round")
        if pool.status != "active":
            return status(False, f"Pool is {pool.status}")
        if rnd.halted_reason:
            return status(False, f"Round halted: {rnd.halted_reason}")
        if self._repo.load_payout(pool.id, rnd.number) is not None:
            return status(False, "A payout attempt already exists for this round")
        if received == 0:
            return status(False, "No contributions received yet")
        if missing:
            return status(False, f"Waiting for {len(missing)} contribution(s)")
        if connect == "no_payout_method":
            return status(False, "Recipient has no payout method configured")
        if self._clock().date() >= rnd.scheduled_payout_date:
            return status(False, "Scheduled payout date reached; use the scheduled payout")
        return status(True, "All contributions received")

    def verify_confirmation(self, requested_by: str, confirmation_code: Optional[str]) -> None:
        if self._verifier is None:
            return
        if not confirmation_code:
            raise ConfirmationRequired("Operator confirmation code required", details={"requested_by": requested_by})
        if not self._verifier.verify(requested_by, confirmation_code):
            logger.warning("early payout confirmation rejected requested_by=%s", requested_by)
            raise ConfirmationInvalid("Invalid confirmation code", details={"requested_by": requested_by})

    def initiate(
        self,
        pool: Pool,
        rnd: Round,
        *,
        requested_by: str,
        reason: str,
        confirmation_code: Optional[str] = None,
    ) -> tuple[EarlyPayoutRequest, PayoutResult]:
        """Must run inside the round scope."""
        self.verify_confirmation(requested_by, confirmation_code)

        eligibility = self.check_eligibility(pool, rnd)
        now = self._clock()
        request = EarlyPayoutRequest(
            id=str(uuid.uuid4()),
            pool_id=pool.id,
            round_number=rnd.number,
            requested_by=requested_by,
            reason=reason,
            outcome="approved" if eligibility.allowed else "denied",
            created_at=now,
            resolved_at=now,
            denial_reason=None if eligibility.allowed else eligibility.reason,
        )
        self._repo.append_early_payout_request(request)

        if not eligibility.allowed:
            logger.info(
                "early payout denied pool=%s round=%s requested_by=%s reason=%s",
                pool.id, rnd.number, requested_by, eligibility.reason,
            )
            safe_notify(
                self._notifications,
                EARLY_PAYOUT_DENIED,
                {
                    "pool_id": pool.id,
                    "round_number": rnd.number,
                    "requested_by": requested_by,
                    "reason": eligibility.reason,
                    "missing_contributions": list(eligibility.missing_contributions),
                },
            )
            raise EarlyPayoutNotAllowed(
                eligibility.reason,
                details={
                    "pool_id": pool.id,
                    "round_number": rnd.number,
                    "request_id": request.id,
                    "missing_contributions": list(eligibility.missing_contributions),
                    "recipient_connect_status": eligibility.recipient_connect_status,
                },
            )

        logger.info(
            "early payout approved pool=%s round=%s requested_by=%s request=%s",
            pool.id, rnd.number, requested_by, request.id,
        )
        result = self._scheduler.trigger_payout(pool, rnd, early=True)
        return request, result

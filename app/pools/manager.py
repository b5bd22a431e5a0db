# app/pools/manager.py
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Callable, Optional, Sequence

from app.config import EngineConfig
from app.errors import (
    ConsistencyViolation,
    EngineError,
    HoldNotFound,
    InvalidConfiguration,
    InvalidTransition,
    MemberNotFound,
    PayoutDeliveryFailed,
    PayoutNotDue,
    PoolNotActive,
    PoolNotFound,
    RequiresManualReconciliation,
    RoundClosed,
    RoundHalted,
    RoundNotFound,
)
from app.escrow.controller import EscrowController
from app.gateway.base import PaymentGateway
from app.notifications import (
    CONTRIBUTION_RECEIVED,
    PAYOUT_RELEASED,
    NotificationSink,
    safe_notify,
)
from app.payouts.early import EarlyPayoutWorkflow
from app.payouts.model import PayoutResult, ReadyToRelease
from app.payouts.scheduler import PayoutScheduler
from app.pools.contributions import ContributionTracker
from app.pools.locks import InProcessRoundLocks, RoundLocks
from app.pools.model import (
    FREQUENCIES,
    PAYOUT_METHOD_TYPES,
    Member,
    PayoutMethod,
    Pool,
    Round,
    utcnow,
)
from app.pools.rotation import recipient_for, validate_positions
from app.pools.schedule import scheduled_payout_date
from app.pools.state_machine import assert_pool_transition, assert_round_transition
from app.repository.base import Repository
from app.results import OperationResult
from app.verification import CodeVerifier

logger = logging.getLogger("tanda.pools")

MIN_MEMBERS = 2


def _data(obj: Any) -> Optional[dict[str, Any]]:
    return asdict(obj) if obj is not None else None


class PoolStateManager:
    """
    Top-level aggregate: the only writer of current_round, payout_processed
    and pool status.

    Every public operation returns an OperationResult. EngineErrors raised by
    the components become `ok=False` results; anything else propagates.
    """

    def __init__(
        self,
        repository: Repository,
        gateway: PaymentGateway,
        *,
        config: Optional[EngineConfig] = None,
        locks: Optional[RoundLocks] = None,
        notifications: Optional[NotificationSink] = None,
        verifier: Optional[CodeVerifier] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repository = repository
        self.config = config or EngineConfig()
        self.locks = locks or InProcessRoundLocks()
        self.notifications = notifications
        self._clock = clock

        self.tracker = ContributionTracker(repository, clock=clock)
        self.escrow = EscrowController(repository, gateway, self.config, clock=clock, sleep=sleep)
        self.scheduler = PayoutScheduler(self.tracker, self.escrow, self.config, repository, clock=clock)
        self.early = EarlyPayoutWorkflow(
            self.scheduler,
            self.tracker,
            repository,
            verifier=verifier,
            notifications=notifications,
            clock=clock,
        )

    # ==========================================================
    # Pool lifecycle
    # ==========================================================

    def create_pool(
        self,
        *,
        name: str,
        members: Sequence[Member],
        contribution_amount_cents: int,
        frequency: str,
        start_date: date,
        pool_id: Optional[str] = None,
    ) -> OperationResult:
        def op():
            if not (name or "").strip():
                raise InvalidConfiguration("Pool name is required")
            if len(members) < MIN_MEMBERS:
                raise InvalidConfiguration(
                    f"A pool needs at least {MIN_MEMBERS} members",
                    details={"member_count": len(members)},
                )
            if int(contribution_amount_cents) <= 0:
                raise InvalidConfiguration(
                    "Contribution amount must be positive",
                    details={"contribution_amount_cents": contribution_amount_cents},
                )
            if frequency not in FREQUENCIES:
                raise InvalidConfiguration(f"Unsupported frequency: {frequency}", details={"allowed": list(FREQUENCIES)})
            validate_positions(members)
            for m in members:
                if m.payout_method is not None:
                    _validate_payout_method(m.payout_method.type, m.payout_method.handle)

            pool = Pool(
                id=pool_id or str(uuid.uuid4()),
                name=name.strip(),
                members=list(members),
                contribution_amount_cents=int(contribution_amount_cents),
                frequency=frequency,
                start_date=start_date,
                created_at=self._clock(),
            )
            with self.locks.pool_scope(pool.id):
                if self.repository.load_pool(pool.id) is not None:
                    raise InvalidConfiguration(f"Pool {pool.id} already exists", details={"pool_id": pool.id})
                self.repository.save_pool(pool)

            logger.info(
                "pool created pool=%s members=%s contribution_cents=%s frequency=%s",
                pool.id, len(pool.members), pool.contribution_amount_cents, pool.frequency,
            )
            return {"pool": _data(pool), "payout_amount_cents": pool.payout_amount_cents}

        return self._run("create_pool", op)

    def start_pool(self, pool_id: str) -> OperationResult:
        def op():
            with self.locks.pool_scope(pool_id):
                pool = self._load_pool(pool_id)
                assert_pool_transition(pool.status, "active")
                pool.status = "active"
                self.repository.save_pool(pool)
            rnd = self._ensure_round(pool, pool.current_round)
            logger.info("pool started pool=%s round=%s recipient=%s", pool.id, rnd.number, rnd.recipient_member_id)
            return {"pool": _data(pool), "round": _data(rnd)}

        return self._run("start_pool", op)

    def pause_pool(self, pool_id: str) -> OperationResult:
        return self._run("pause_pool", lambda: self._set_status(pool_id, "paused"))

    def resume_pool(self, pool_id: str) -> OperationResult:
        return self._run("resume_pool", lambda: self._set_status(pool_id, "active"))

    def cancel_pool(self, pool_id: str, *, operator: str = "system") -> OperationResult:
        def op():
            pool = self._load_pool(pool_id)
            assert_pool_transition(pool.status, "cancelled")
            voided: list[str] = []
            unresolved: list[dict[str, Any]] = []

            with self.locks.round_scope(pool.id, pool.current_round):
                rnd = self.repository.load_round(pool.id, pool.current_round)
                if rnd is not None and rnd.status not in ("released", "cancelled"):
                    for hold in self.repository.list_holds(pool.id, rnd.number):
                        if hold.state == "authorized":
                            try:
                                self.escrow.void(hold.id)
                                voided.append(hold.id)
                            except RequiresManualReconciliation as exc:
                                unresolved.append({"hold_id": hold.id, "error": exc.message})
                        elif hold.state == "captured":
                            unresolved.append({"hold_id": hold.id, "error": "captured funds on cancelled round"})
                    assert_round_transition(rnd.status, "cancelled")
                    rnd.status = "cancelled"
                    self.repository.save_round(rnd)

                with self.locks.pool_scope(pool.id):
                    pool = self._load_pool(pool_id)
                    assert_pool_transition(pool.status, "cancelled")
                    pool.status = "cancelled"
                    self.repository.save_pool(pool)

            if unresolved:
                logger.error(
                    "pool cancelled with unresolved holds pool=%s round=%s holds=%s operator=%s",
                    pool.id, pool.current_round, [u["hold_id"] for u in unresolved], operator,
                )
            logger.info("pool cancelled pool=%s voided=%s operator=%s", pool.id, len(voided), operator)
            return {"pool": _data(pool), "voided_holds": voided, "requires_reconciliation": unresolved}

        return self._run("cancel_pool", op)

    def set_payout_method(self, pool_id: str, member_id: str, method_type: str, handle: str) -> OperationResult:
        def op():
            _validate_payout_method(method_type, handle)
            with self.locks.pool_scope(pool_id):
                pool = self._load_pool(pool_id)
                if pool.status in ("completed", "cancelled"):
                    raise PoolNotActive(f"Pool is {pool.status}", details={"pool_id": pool_id})
                member = self._member(pool, member_id)
                member.payout_method = PayoutMethod(type=method_type, handle=handle.strip())
                self.repository.save_pool(pool)
            logger.info("payout method set pool=%s member=%s type=%s", pool_id, member_id, method_type)
            return {"member": _data(member)}

        return self._run("set_payout_method", op)

    # ==========================================================
    # Contributions
    # ==========================================================

    def record_contribution(
        self,
        pool_id: str,
        member_id: str,
        amount_cents: int,
        *,
        payer_ref: Optional[str] = None,
        contribution_id: Optional[str] = None,
    ) -> OperationResult:
        def op():
            pool = self._load_active_pool(pool_id)
            self._member(pool, member_id)
            round_number = pool.current_round
            cid = contribution_id or str(uuid.uuid4())

            with self.locks.member_scope(pool.id, round_number, member_id):
                rnd = self._load_round(pool.id, round_number)
                if rnd.payout_processed or rnd.status in ("released", "cancelled"):
                    raise RoundClosed(
                        f"Round {rnd.number} is no longer collecting",
                        details={"pool_id": pool.id, "round_number": rnd.number, "round_status": rnd.status},
                    )
                if rnd.halted_reason:
                    raise RoundHalted(
                        f"Round is halted: {rnd.halted_reason}",
                        details={"pool_id": pool.id, "round_number": rnd.number},
                    )

                self.tracker.validate(pool, rnd, member_id, amount_cents)
                hold = None
                if payer_ref:
                    hold = self.escrow.authorize(
                        pool_id=pool.id,
                        round_number=rnd.number,
                        member_id=member_id,
                        contribution_id=cid,
                        payer_ref=payer_ref,
                        amount_cents=amount_cents,
                    )
                contribution = self.tracker.record_contribution(
                    pool,
                    rnd,
                    member_id,
                    amount_cents,
                    contribution_id=cid,
                    escrow_hold_id=hold.id if hold else None,
                )

            logger.info(
                "contribution recorded pool=%s round=%s member=%s amount_cents=%s escrow=%s",
                pool.id, rnd.number, member_id, contribution.amount_cents, bool(hold),
            )
            safe_notify(
                self.notifications,
                CONTRIBUTION_RECEIVED,
                {
                    "pool_id": pool.id,
                    "round_number": rnd.number,
                    "member_id": member_id,
                    "amount_cents": contribution.amount_cents,
                    "contribution_id": contribution.id,
                },
            )

            data: dict[str, Any] = {"contribution": _data(contribution), "hold": _data(hold)}
            data.update(self._after_contribution(pool.id, rnd.number))
            return data

        return self._run("record_contribution", op)

    def _after_contribution(self, pool_id: str, round_number: int) -> dict[str, Any]:
        """Re-evaluate the round; release right away when it is complete and due."""
        with self.locks.round_scope(pool_id, round_number):
            pool = self._load_pool(pool_id)
            rnd = self._load_round(pool_id, round_number)
            decision = self._refresh_round_status(pool, rnd)
            out: dict[str, Any] = {"decision": _data(decision)}

            if not isinstance(decision, ReadyToRelease) or pool.status != "active":
                return out
            if self._clock().date() < rnd.scheduled_payout_date:
                return out

            try:
                result = self._release_locked(pool, rnd, early=False)
            except EngineError as exc:
                # the contribution itself stands; the payout is retried by the worker
                logger.error(
                    "auto release failed pool=%s round=%s code=%s err=%s",
                    pool_id, round_number, exc.code, exc.message,
                )
                out["payout_error"] = exc.to_dict()
                return out
            out["payout"] = _data(result)
            return out

    # ==========================================================
    # Read side
    # ==========================================================

    def get_round_status(self, pool_id: str, round_number: Optional[int] = None) -> OperationResult:
        def op():
            pool = self._load_pool(pool_id)
            n = round_number or pool.current_round
            rnd = self._load_round(pool_id, n)
            live = self.tracker.live_contributions(pool.id, rnd.number)
            missing = self.tracker.missing_contributors(pool, rnd)
            decision = self.scheduler.evaluate_round(pool, rnd)
            fee = self.scheduler.fee_for(rnd)
            record = self.repository.load_payout(pool.id, rnd.number)
            recipient = pool.member(rnd.recipient_member_id)
            return {
                "pool_id": pool.id,
                "pool_status": pool.status,
                "round_number": rnd.number,
                "total_rounds": pool.total_rounds,
                "current_round": pool.current_round,
                "status": rnd.status,
                "recipient_member_id": rnd.recipient_member_id,
                "recipient_display_name": recipient.display_name if recipient else None,
                "scheduled_payout_date": rnd.scheduled_payout_date,
                "payout_amount_cents": rnd.payout_amount_cents,
                "platform_fee_cents": fee,
                "net_payout_cents": rnd.payout_amount_cents - fee,
                "received_cents": sum(c.amount_cents for c in live.values()),
                "contributed": [m.id for m in pool.members_by_position() if m.id in live],
                "missing_contributors": missing,
                "processing_contributors": self.tracker.processing_contributors(pool, rnd),
                "decision": _data(decision),
                "payout_processed": rnd.payout_processed,
                "early_payout": rnd.early_payout,
                "halted_reason": rnd.halted_reason,
                "payout": _data(rnd.payout_result),
                "payout_record_status": record.status if record else None,
            }

        return self._run("get_round_status", op)

    def check_early_payout_eligibility(self, pool_id: str) -> OperationResult:
        def op():
            pool = self._load_pool(pool_id)
            rnd = self._load_round(pool_id, pool.current_round)
            return {"eligibility": _data(self.early.check_eligibility(pool, rnd))}

        return self._run("check_early_payout_eligibility", op)

    # ==========================================================
    # Payout triggers
    # ==========================================================

    def initiate_early_payout(
        self,
        pool_id: str,
        *,
        requested_by: str,
        reason: str,
        confirmation_code: Optional[str] = None,
    ) -> OperationResult:
        def op():
            pool = self._load_pool(pool_id)
            round_number = pool.current_round

            with self.locks.round_scope(pool.id, round_number):
                pool = self._load_pool(pool_id)
                rnd = self._load_round(pool_id, round_number)
                try:
                    request, result = self.early.initiate(
                        pool,
                        rnd,
                        requested_by=requested_by,
                        reason=reason,
                        confirmation_code=confirmation_code,
                    )
                except (RequiresManualReconciliation, PayoutDeliveryFailed):
                    self._mark_early_attempt(pool_id, round_number)
                    raise
                except ConsistencyViolation as exc:
                    self._halt(pool_id, round_number, exc)
                    raise
                self._apply_release(pool_id, round_number, result)

            return {"request": _data(request), "payout": _data(result)}

        return self._run("initiate_early_payout", op)

    def trigger_scheduled_payout(self, pool_id: str) -> OperationResult:
        def op():
            pool = self._load_pool(pool_id)
            round_number = pool.current_round

            with self.locks.round_scope(pool.id, round_number):
                pool = self._load_pool(pool_id)
                rnd = self._load_round(pool_id, round_number)
                if rnd.payout_processed:
                    # lost the race, or an earlier advance was interrupted
                    return {"payout": _data(self._processed_result(pool, rnd)), "already_processed": True}

                self._require_active(pool)
                if self._clock().date() < rnd.scheduled_payout_date:
                    raise PayoutNotDue(
                        "Scheduled payout date not reached",
                        details={
                            "pool_id": pool.id,
                            "round_number": rnd.number,
                            "scheduled_payout_date": rnd.scheduled_payout_date.isoformat(),
                        },
                    )
                result = self._release_locked(pool, rnd, early=False)

            return {"payout": _data(result), "already_processed": False}

        return self._run("trigger_scheduled_payout", op)

    # ==========================================================
    # Operator reconciliation
    # ==========================================================

    def resolve_payout(
        self,
        pool_id: str,
        round_number: int,
        *,
        confirmed: bool,
        operator: str,
        gateway_ref: Optional[str] = None,
    ) -> OperationResult:
        def op():
            with self.locks.round_scope(pool_id, round_number):
                self._load_pool(pool_id)
                rnd = self._load_round(pool_id, round_number)
                record = self.repository.load_payout(pool_id, round_number)
                if record is None:
                    raise InvalidTransition(
                        "No payout attempt to resolve",
                        details={"pool_id": pool_id, "round_number": round_number},
                    )
                if rnd.payout_processed:
                    pool = self._load_pool(pool_id)
                    return {"payout_record": _data(record), "payout": _data(self._processed_result(pool, rnd))}

                if not confirmed:
                    record = self.escrow.abandon_release(record, operator=operator)
                    if rnd.early_payout:
                        rnd.early_payout = False
                        self.repository.save_round(rnd)
                    logger.warning(
                        "payout abandoned pool=%s round=%s payout=%s operator=%s",
                        pool_id, round_number, record.id, operator,
                    )
                    return {"payout_record": _data(record), "payout": None}

                record = self.escrow.confirm_release(record, gateway_ref=gateway_ref, operator=operator)
                result = self.scheduler.result_from_record(record, early=rnd.early_payout)
                self._apply_release(pool_id, round_number, result)
                logger.warning(
                    "payout confirmed by operator pool=%s round=%s payout=%s operator=%s",
                    pool_id, round_number, record.id, operator,
                )
                return {"payout_record": _data(record), "payout": _data(result)}

        return self._run("resolve_payout", op)

    def resolve_hold(
        self,
        pool_id: str,
        hold_id: str,
        *,
        captured: bool,
        operator: str,
        capture_ref: Optional[str] = None,
    ) -> OperationResult:
        def op():
            hold = self.repository.load_hold(hold_id)
            if hold is None or hold.pool_id != pool_id:
                raise HoldNotFound(hold_id)

            with self.locks.round_scope(pool_id, hold.round_number):
                pool = self._load_pool(pool_id)
                hold = self.escrow.resolve(hold_id, captured=captured, operator=operator, capture_ref=capture_ref)
                rnd = self.repository.load_round(pool_id, hold.round_number)
                decision = self._refresh_round_status(pool, rnd) if rnd is not None else None

            return {"hold": _data(hold), "decision": _data(decision)}

        return self._run("resolve_hold", op)

    def clear_round_halt(self, pool_id: str, round_number: int, *, operator: str) -> OperationResult:
        def op():
            with self.locks.round_scope(pool_id, round_number):
                rnd = self._load_round(pool_id, round_number)
                previous = rnd.halted_reason
                rnd.halted_reason = None
                self.repository.save_round(rnd)
            logger.warning(
                "round halt cleared pool=%s round=%s operator=%s previous=%s",
                pool_id, round_number, operator, previous,
            )
            return {"round": _data(rnd), "previous_reason": previous}

        return self._run("clear_round_halt", op)

    def expire_stale_holds(self, pool_id: str) -> OperationResult:
        def op():
            pool = self._load_pool(pool_id)
            with self.locks.round_scope(pool.id, pool.current_round):
                expired = self.escrow.expire_stale(pool.id, pool.current_round)
                rnd = self.repository.load_round(pool.id, pool.current_round)
                if expired and rnd is not None:
                    self._refresh_round_status(pool, rnd)
            return {"expired_holds": [h.id for h in expired]}

        return self._run("expire_stale_holds", op)

    # ==========================================================
    # Internals
    # ==========================================================

    def _run(self, name: str, fn: Callable[[], dict[str, Any]]) -> OperationResult:
        try:
            return OperationResult.success(fn())
        except EngineError as exc:
            level = logging.ERROR if exc.category in ("gateway", "consistency") else logging.INFO
            logger.log(level, "%s failed code=%s details=%s", name, exc.code, exc.details)
            return OperationResult.failure(exc)

    def _release_locked(self, pool: Pool, rnd: Round, *, early: bool) -> PayoutResult:
        """Caller holds the round scope."""
        if rnd.payout_processed:
            return self._processed_result(pool, rnd)
        if pool.current_round != rnd.number:
            exc = ConsistencyViolation(
                "Round is not the pool's current round",
                details={"pool_id": pool.id, "round_number": rnd.number, "current_round": pool.current_round},
            )
            self._halt(pool.id, rnd.number, exc)
            raise exc
        try:
            result = self.scheduler.trigger_payout(pool, rnd, early=early)
        except ConsistencyViolation as exc:
            self._halt(pool.id, rnd.number, exc)
            raise
        self._apply_release(pool.id, rnd.number, result)
        return result

    def _processed_result(self, pool: Pool, rnd: Round) -> PayoutResult:
        """Cached result of a processed round; finishes the pool advance if it never landed."""
        result = self.scheduler.trigger_payout(pool, rnd)
        if self._advance_pool(pool.id, rnd.number, result):
            logger.warning(
                "completed interrupted round advance pool=%s round=%s payout=%s",
                pool.id, rnd.number, result.payout_id,
            )
        return result

    def _apply_release(self, pool_id: str, round_number: int, result: PayoutResult) -> None:
        """Marks the round processed and advances the pool. Caller holds the round scope."""
        rnd = self._load_round(pool_id, round_number)
        if rnd.status == "collecting":
            rnd.status = "ready"
        assert_round_transition(rnd.status, "released")
        rnd.payout_processed = True
        rnd.status = "released"
        rnd.early_payout = result.early_payout
        rnd.payout_result = result
        self.repository.save_round(rnd)
        self._advance_pool(pool_id, round_number, result)

    def _advance_pool(self, pool_id: str, round_number: int, result: PayoutResult) -> bool:
        """
        Credits the recipient and moves the pool past a processed round.
        No-op once the pool has moved on, so a processed round whose advance
        was interrupted is finished by the next trigger. Caller holds the round scope.
        """
        with self.locks.pool_scope(pool_id):
            pool = self._load_pool(pool_id)
            if pool.current_round != round_number or pool.status in ("completed", "cancelled"):
                return False

            recipient = pool.member(result.recipient_member_id)
            if recipient is not None:
                recipient.total_received_cents += result.net_amount_cents
            if round_number >= pool.total_rounds:
                assert_pool_transition(pool.status, "completed")
                pool.status = "completed"
            else:
                pool.current_round = round_number + 1
            self.repository.save_pool(pool)

        if pool.status in ("active", "paused"):
            self._ensure_round(pool, pool.current_round)

        logger.info(
            "round advanced pool=%s released_round=%s current_round=%s status=%s",
            pool_id, round_number, pool.current_round, pool.status,
        )
        safe_notify(
            self.notifications,
            PAYOUT_RELEASED,
            {
                "pool_id": pool_id,
                "round_number": round_number,
                "recipient_member_id": result.recipient_member_id,
                "net_amount_cents": result.net_amount_cents,
                "fee_cents": result.fee_cents,
                "early_payout": result.early_payout,
                "payout_id": result.payout_id,
            },
        )
        return True

    def _refresh_round_status(self, pool: Pool, rnd: Round):
        decision = self.scheduler.evaluate_round(pool, rnd)
        if rnd.status in ("collecting", "ready"):
            new_status = "ready" if isinstance(decision, ReadyToRelease) else "collecting"
            if new_status != rnd.status:
                assert_round_transition(rnd.status, new_status)
                rnd.status = new_status
                self.repository.save_round(rnd)
        return decision

    def _mark_early_attempt(self, pool_id: str, round_number: int) -> None:
        # a release attempt is on record; only resolve_payout may settle the round now
        if self.repository.load_payout(pool_id, round_number) is None:
            return
        rnd = self._load_round(pool_id, round_number)
        rnd.early_payout = True
        self.repository.save_round(rnd)

    def _halt(self, pool_id: str, round_number: int, exc: ConsistencyViolation) -> None:
        rnd = self.repository.load_round(pool_id, round_number)
        if rnd is None:
            return
        rnd.halted_reason = exc.message
        self.repository.save_round(rnd)
        logger.critical(
            "round halted pool=%s round=%s reason=%s details=%s",
            pool_id, round_number, exc.message, exc.details,
        )

    def _ensure_round(self, pool: Pool, number: int) -> Round:
        """Rounds are materialized one at a time as the pool reaches them."""
        existing = self.repository.load_round(pool.id, number)
        if existing is not None:
            return existing
        if number > pool.total_rounds:
            raise RoundNotFound(pool.id, number)
        rnd = Round(
            pool_id=pool.id,
            number=number,
            recipient_member_id=recipient_for(pool.members, number),
            scheduled_payout_date=scheduled_payout_date(pool.start_date, pool.frequency, number),
            payout_amount_cents=pool.payout_amount_cents,
        )
        self.repository.save_round(rnd)
        return rnd

    def _set_status(self, pool_id: str, status: str) -> dict[str, Any]:
        with self.locks.pool_scope(pool_id):
            pool = self._load_pool(pool_id)
            assert_pool_transition(pool.status, status)
            pool.status = status
            self.repository.save_pool(pool)
        logger.info("pool status changed pool=%s status=%s", pool_id, status)
        return {"pool": _data(pool)}

    def _load_pool(self, pool_id: str) -> Pool:
        pool = self.repository.load_pool(pool_id)
        if pool is None:
            raise PoolNotFound(pool_id)
        return pool

    def _load_active_pool(self, pool_id: str) -> Pool:
        pool = self._load_pool(pool_id)
        self._require_active(pool)
        return pool

    @staticmethod
    def _require_active(pool: Pool) -> None:
        if pool.status != "active":
            raise PoolNotActive(f"Pool is {pool.status}", details={"pool_id": pool.id, "status": pool.status})

    def _load_round(self, pool_id: str, round_number: int) -> Round:
        rnd = self.repository.load_round(pool_id, round_number)
        if rnd is None:
            raise RoundNotFound(pool_id, round_number)
        return rnd

    @staticmethod
    def _member(pool: Pool, member_id: str) -> Member:
        member = pool.member(member_id)
        if member is None:
            raise MemberNotFound(pool.id, member_id)
        return member


def _validate_payout_method(method_type: str, handle: str) -> None:
    if method_type not in PAYOUT_METHOD_TYPES:
        raise InvalidConfiguration(
            f"Unsupported payout method: {method_type}",
            details={"allowed": list(PAYOUT_METHOD_TYPES)},
        )
    if not (handle or "").strip():
        raise InvalidConfiguration("Payout method handle is required")

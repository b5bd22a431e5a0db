# app/escrow/controller.py
from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from app.config import EngineConfig
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
from app.escrow.model import EscrowEvent, EscrowHold
from app.escrow.state_machine import assert_captured_invariant, assert_transition
from app.gateway.base import GatewayResult, PaymentGateway
from app.payouts import state_machine as payout_states
from app.payouts.model import PayoutRecord
from app.pools.model import PayoutMethod, utcnow
from app.repository.base import Repository

logger = logging.getLogger("tanda.escrow")

RETRYABLE_HTTP = {408, 425, 429, 500, 502, 503, 504}


def _http_status(resp: Any) -> Optional[int]:
    if isinstance(resp, dict):
        v = resp.get("http_status")
        return int(v) if v is not None else None
    return None


def _is_retryable(res: GatewayResult) -> bool:
    if res.retryable is not None:
        return res.retryable
    if res.unknown:
        return True
    return _http_status(res.response) in RETRYABLE_HTTP


def _backoff_seconds(base: float, attempt: int) -> float:
    # base, 2*base, 4*base...
    return base * (2 ** max(0, attempt - 1))


class EscrowController:
    """
    Owns the lifecycle of escrow holds and the single money-out release.

    authorize  -> retried with backoff (no funds moved yet)
    capture    -> idempotent; failures flag the hold for reconciliation
    release    -> payout record persisted as `pending` before the gateway
                  call; a pending/unknown record is never retried blindly
    void       -> returns an authorized hold to the payer
    resolve    -> operator settles a hold flagged for reconciliation
    """

    def __init__(
        self,
        repository: Repository,
        gateway: PaymentGateway,
        config: EngineConfig,
        *,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._repo = repository
        self._gateway = gateway
        self._config = config
        self._clock = clock
        self._sleep = sleep

    # ==========================================================
    # Authorize
    # ==========================================================

    def authorize(
        self,
        *,
        pool_id: str,
        round_number: int,
        member_id: str,
        contribution_id: str,
        payer_ref: str,
        amount_cents: int,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ) -> EscrowHold:
        attempts = max_attempts or self._config.authorize_max_attempts
        base_delay = self._config.authorize_backoff_seconds if backoff_seconds is None else backoff_seconds
        # same key on every attempt: the gateway dedupes retried authorizations
        key = f"authorize:{contribution_id}"

        res: Optional[GatewayResult] = None
        for attempt in range(1, attempts + 1):
            res = self._gateway.authorize(payer_ref, amount_cents, idempotency_key=key)
            if res.ok:
                break

            retryable = _is_retryable(res)
            logger.warning(
                "escrow authorize failed pool=%s round=%s member=%s attempt=%s/%s retryable=%s err=%s",
                pool_id, round_number, member_id, attempt, attempts, retryable, res.error,
            )
            if not retryable or attempt >= attempts:
                raise GatewayAuthorizationFailed(
                    res.error or "Authorization declined",
                    details={
                        "pool_id": pool_id,
                        "round_number": round_number,
                        "member_id": member_id,
                        "attempts": attempt,
                        "gateway_status": res.status,
                    },
                )
            self._sleep(_backoff_seconds(base_delay, attempt))

        now = self._clock()
        hold = EscrowHold(
            id=str(uuid.uuid4()),
            pool_id=pool_id,
            round_number=round_number,
            member_id=member_id,
            contribution_id=contribution_id,
            amount_cents=int(amount_cents),
            state="authorized",
            created_at=now,
            release_deadline=now + self._config.hold_window,
            gateway_ref=res.ref,
        )
        self._repo.save_hold(hold)
        self._record_event(hold, None, "authorized", {"gateway_ref": res.ref})
        logger.info(
            "escrow hold authorized pool=%s round=%s member=%s hold=%s amount_cents=%s deadline=%s",
            pool_id, round_number, member_id, hold.id, hold.amount_cents, hold.release_deadline.isoformat(),
        )
        return hold

    # ==========================================================
    # Capture
    # ==========================================================

    def capture(self, hold_id: str) -> EscrowHold:
        hold = self._load(hold_id)

        if hold.state in ("captured", "released"):
            return hold
        if hold.needs_reconciliation:
            raise self._reconcile_error(hold, "Hold is awaiting manual reconciliation")
        if hold.state == "expired":
            raise HoldExpired("Escrow hold expired before capture", details=self._context(hold))
        if hold.state != "authorized":
            raise InvalidTransition(f"Cannot capture hold in state {hold.state}", details=self._context(hold))

        if self._clock() > hold.release_deadline:
            self._transition(hold, "expired", {"reason": "deadline passed before capture"})
            logger.error(
                "escrow hold expired pool=%s round=%s hold=%s deadline=%s",
                hold.pool_id, hold.round_number, hold.id, hold.release_deadline.isoformat(),
            )
            raise HoldExpired("Escrow hold expired before capture", details=self._context(hold))

        res = self._gateway.capture(hold.gateway_ref or hold.id, idempotency_key=f"capture:{hold.id}")
        if res.ok:
            capture_ref = res.ref or f"capture:{hold.id}"
            assert_captured_invariant("captured", capture_ref)
            hold.capture_ref = capture_ref
            hold.captured_at = self._clock()
            self._transition(hold, "captured", {"capture_ref": capture_ref})
            return hold

        hold.needs_reconciliation = True
        hold.last_error = res.error or res.status
        self._repo.save_hold(hold)
        self._record_event(hold, hold.state, hold.state, {"capture_failed": res.status, "error": res.error})
        logger.error(
            "escrow capture failed pool=%s round=%s hold=%s gateway_status=%s err=%s",
            hold.pool_id, hold.round_number, hold.id, res.status, res.error,
        )
        raise self._reconcile_error(hold, f"Capture {res.status}: {res.error or 'no detail'}")

    # ==========================================================
    # Void
    # ==========================================================

    def void(self, hold_id: str) -> EscrowHold:
        hold = self._load(hold_id)

        if hold.state in ("voided", "expired"):
            return hold
        if hold.state in ("captured", "released"):
            raise AlreadyCaptured("Captured funds cannot be voided", details=self._context(hold))

        res = self._gateway.void(hold.gateway_ref or hold.id, idempotency_key=f"void:{hold.id}")
        if res.ok:
            hold.voided_at = self._clock()
            self._transition(hold, "voided", {})
            return hold

        hold.needs_reconciliation = True
        hold.last_error = res.error or res.status
        self._repo.save_hold(hold)
        logger.error(
            "escrow void failed pool=%s round=%s hold=%s gateway_status=%s err=%s",
            hold.pool_id, hold.round_number, hold.id, res.status, res.error,
        )
        raise self._reconcile_error(hold, f"Void {res.status}: {res.error or 'no detail'}")

    # ==========================================================
    # Expiry sweep
    # ==========================================================

    def expire_stale(self, pool_id: str, round_number: Optional[int] = None) -> list[EscrowHold]:
        now = self._clock()
        expired: list[EscrowHold] = []
        for hold in self._repo.list_holds(pool_id, round_number):
            # flagged holds wait for the operator, their gateway outcome is unknown
            if hold.state == "authorized" and not hold.needs_reconciliation and now > hold.release_deadline:
                self._transition(hold, "expired", {"reason": "sweep"})
                logger.error(
                    "escrow hold expired pool=%s round=%s hold=%s member=%s",
                    hold.pool_id, hold.round_number, hold.id, hold.member_id,
                )
                expired.append(hold)
        return expired

    # ==========================================================
    # Operator reconciliation
    # ==========================================================

    def resolve(
        self,
        hold_id: str,
        *,
        captured: bool,
        operator: str,
        capture_ref: Optional[str] = None,
    ) -> EscrowHold:
        """
        Settle a hold whose capture or void outcome was never confirmed.
        captured=True records the capture the operator saw at the gateway;
        captured=False records that the authorization was returned to the payer.
        """
        hold = self._load(hold_id)
        if not hold.needs_reconciliation or hold.state != "authorized":
            raise InvalidTransition(
                f"Hold is not awaiting reconciliation (state={hold.state})",
                details=self._context(hold),
            )

        hold.needs_reconciliation = False
        if captured:
            ref = capture_ref or f"capture:{hold.id}"
            assert_captured_invariant("captured", ref)
            hold.capture_ref = ref
            hold.captured_at = self._clock()
            self._transition(hold, "captured", {"capture_ref": ref, "resolved_by": operator})
        else:
            hold.voided_at = self._clock()
            self._transition(hold, "voided", {"resolved_by": operator})

        logger.warning(
            "escrow hold resolved by operator pool=%s round=%s hold=%s state=%s operator=%s",
            hold.pool_id, hold.round_number, hold.id, hold.state, operator,
        )
        return hold

    # ==========================================================
    # Release
    # ==========================================================

    def release_to_recipient(
        self,
        *,
        pool_id: str,
        round_number: int,
        recipient_member_id: str,
        payout_method: Optional[PayoutMethod],
        hold_ids: list[str],
        gross_amount_cents: int,
        fee_cents: int,
    ) -> PayoutRecord:
        """
        Forward the round's captured funds to the recipient in one payout.
        Holds must already be captured; direct contributions have no hold.
        """
        ctx = {"pool_id": pool_id, "round_number": round_number, "recipient_member_id": recipient_member_id}
        if payout_method is None:
            raise NoPayoutMethodConfigured("Recipient has no payout method configured", details=ctx)

        holds = [self._load(h) for h in hold_ids]
        for hold in holds:
            if hold.state != "captured":
                raise InvalidTransition(
                    f"Hold {hold.id} must be captured before release (state={hold.state})",
                    details=self._context(hold),
                )

        existing = self._repo.load_payout(pool_id, round_number)
        attempt = 1
        if existing is not None:
            if existing.status == "confirmed":
                raise ConsistencyViolation(
                    "Round already has a confirmed payout",
                    details={**ctx, "payout_id": existing.id},
                )
            if existing.status in ("pending", "unknown") or existing.resolved_at is None:
                raise RequiresManualReconciliation(
                    "Previous release attempt has no confirmed outcome",
                    details={**ctx, "payout_id": existing.id, "payout_status": existing.status},
                )
            attempt = existing.attempt + 1

        net = gross_amount_cents - fee_cents
        record = PayoutRecord(
            id=f"{pool_id}:r{round_number}:a{attempt}",
            pool_id=pool_id,
            round_number=round_number,
            recipient_member_id=recipient_member_id,
            method_type=payout_method.type,
            method_handle=payout_method.handle,
            gross_amount_cents=gross_amount_cents,
            fee_cents=fee_cents,
            net_amount_cents=net,
            attempt=attempt,
            status="pending",
            created_at=self._clock(),
        )
        # marker first: a crash after this line leaves a pending record for reconciliation
        self._repo.save_payout(record)
        logger.info(
            "payout release started pool=%s round=%s payout=%s recipient=%s net_cents=%s fee_cents=%s",
            pool_id, round_number, record.id, recipient_member_id, net, fee_cents,
        )

        res = self._gateway.payout(payout_method, net, idempotency_key=record.id)

        if res.ok:
            gateway_ref = res.ref or record.id
            payout_states.assert_confirmed_invariant("confirmed", gateway_ref)
            payout_states.assert_transition(record.status, "confirmed")
            record.status = "confirmed"
            record.gateway_ref = gateway_ref
            self._repo.save_payout(record)
            self._mark_released(holds, record)
            return record

        new_status = "unknown" if res.unknown else "failed"
        payout_states.assert_transition(record.status, new_status)
        record.status = new_status
        record.last_error = res.error or new_status
        self._repo.save_payout(record)

        details = {
            **ctx,
            "payout_id": record.id,
            "payout_status": new_status,
            "holds": {h.id: h.state for h in holds},
            "error": res.error,
        }
        logger.error(
            "payout release %s pool=%s round=%s payout=%s holds=%s err=%s",
            new_status, pool_id, round_number, record.id, [h.id for h in holds], res.error,
        )
        if res.unknown:
            raise RequiresManualReconciliation("Payout outcome unknown; reconcile before retrying", details=details)
        raise PayoutDeliveryFailed(res.error or "Payout delivery failed", details=details)

    def confirm_release(self, record: PayoutRecord, *, gateway_ref: Optional[str], operator: str) -> PayoutRecord:
        """Operator confirmed out-of-band that the payout reached the recipient."""
        payout_states.assert_transition(record.status, "confirmed")
        ref = gateway_ref or record.gateway_ref or record.id
        payout_states.assert_confirmed_invariant("confirmed", ref)
        record.status = "confirmed"
        record.gateway_ref = ref
        record.resolved_at = self._clock()
        record.resolved_by = operator
        self._repo.save_payout(record)

        captured = [h for h in self._repo.list_holds(record.pool_id, record.round_number) if h.state == "captured"]
        self._mark_released(captured, record)
        return record

    def abandon_release(self, record: PayoutRecord, *, operator: str) -> PayoutRecord:
        """Operator confirmed no money moved; a fresh attempt becomes possible."""
        if record.status != "failed":
            payout_states.assert_transition(record.status, "failed")
            record.status = "failed"
        record.resolved_at = self._clock()
        record.resolved_by = operator
        self._repo.save_payout(record)
        return record

    # ==========================================================
    # Internals
    # ==========================================================

    def _mark_released(self, holds: list[EscrowHold], record: PayoutRecord) -> None:
        now = self._clock()
        for hold in holds:
            hold.released_at = now
            self._transition(hold, "released", {"payout_id": record.id})

    def _load(self, hold_id: str) -> EscrowHold:
        hold = self._repo.load_hold(hold_id)
        if hold is None:
            raise HoldNotFound(hold_id)
        return hold

    def _transition(self, hold: EscrowHold, new_state: str, detail: dict[str, Any]) -> None:
        old = hold.state
        assert_transition(old, new_state)
        hold.state = new_state
        self._repo.save_hold(hold)
        self._record_event(hold, old, new_state, detail)

    def _record_event(self, hold: EscrowHold, old: Optional[str], new: str, detail: dict[str, Any]) -> None:
        self._repo.append_escrow_event(
            EscrowEvent(
                hold_id=hold.id,
                pool_id=hold.pool_id,
                round_number=hold.round_number,
                from_state=old,
                to_state=new,
                at=self._clock(),
                detail=detail,
            )
        )

    @staticmethod
    def _context(hold: EscrowHold) -> dict[str, Any]:
        return {
            "pool_id": hold.pool_id,
            "round_number": hold.round_number,
            "hold_id": hold.id,
            "hold_state": hold.state,
            "member_id": hold.member_id,
        }

    def _reconcile_error(self, hold: EscrowHold, message: str) -> RequiresManualReconciliation:
        return RequiresManualReconciliation(message, details={**self._context(hold), "last_error": hold.last_error})

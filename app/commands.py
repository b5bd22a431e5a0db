# app/commands.py
"""
Typed commands for every exposed PoolStateManager operation.

    result = dispatch(manager, RecordContribution(pool_id="p1", member_id="m2", amount_cents=5000))

Handlers are looked up by command type; adding an operation means adding a
dataclass and one HANDLERS entry.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional, Sequence

from app.errors import InvalidConfiguration
from app.pools.manager import PoolStateManager
from app.pools.model import Member
from app.results import OperationResult


@dataclass(frozen=True)
class CreatePool:
    name: str
    members: Sequence[Member]
    contribution_amount_cents: int
    frequency: str
    start_date: date
    pool_id: Optional[str] = None


@dataclass(frozen=True)
class StartPool:
    pool_id: str


@dataclass(frozen=True)
class PausePool:
    pool_id: str


@dataclass(frozen=True)
class ResumePool:
    pool_id: str


@dataclass(frozen=True)
class CancelPool:
    pool_id: str
    operator: str = "system"


@dataclass(frozen=True)
class SetPayoutMethod:
    pool_id: str
    member_id: str
    method_type: str
    handle: str


@dataclass(frozen=True)
class RecordContribution:
    pool_id: str
    member_id: str
    amount_cents: int
    payer_ref: Optional[str] = None
    contribution_id: Optional[str] = None


@dataclass(frozen=True)
class GetRoundStatus:
    pool_id: str
    round_number: Optional[int] = None


@dataclass(frozen=True)
class CheckEarlyPayoutEligibility:
    pool_id: str


@dataclass(frozen=True)
class InitiateEarlyPayout:
    pool_id: str
    requested_by: str
    reason: str
    confirmation_code: Optional[str] = None


@dataclass(frozen=True)
class TriggerScheduledPayout:
    pool_id: str


@dataclass(frozen=True)
class ResolvePayout:
    pool_id: str
    round_number: int
    confirmed: bool
    operator: str
    gateway_ref: Optional[str] = None


@dataclass(frozen=True)
class ResolveHold:
    pool_id: str
    hold_id: str
    captured: bool
    operator: str
    capture_ref: Optional[str] = None


@dataclass(frozen=True)
class ClearRoundHalt:
    pool_id: str
    round_number: int
    operator: str


@dataclass(frozen=True)
class ExpireStaleHolds:
    pool_id: str


Handler = Callable[[PoolStateManager, Any], OperationResult]

HANDLERS: dict[type, Handler] = {
    CreatePool: lambda m, c: m.create_pool(
        name=c.name,
        members=c.members,
        contribution_amount_cents=c.contribution_amount_cents,
        frequency=c.frequency,
        start_date=c.start_date,
        pool_id=c.pool_id,
    ),
    StartPool: lambda m, c: m.start_pool(c.pool_id),
    PausePool: lambda m, c: m.pause_pool(c.pool_id),
    ResumePool: lambda m, c: m.resume_pool(c.pool_id),
    CancelPool: lambda m, c: m.cancel_pool(c.pool_id, operator=c.operator),
    SetPayoutMethod: lambda m, c: m.set_payout_method(c.pool_id, c.member_id, c.method_type, c.handle),
    RecordContribution: lambda m, c: m.record_contribution(
        c.pool_id,
        c.member_id,
        c.amount_cents,
        payer_ref=c.payer_ref,
        contribution_id=c.contribution_id,
    ),
    GetRoundStatus: lambda m, c: m.get_round_status(c.pool_id, c.round_number),
    CheckEarlyPayoutEligibility: lambda m, c: m.check_early_payout_eligibility(c.pool_id),
    InitiateEarlyPayout: lambda m, c: m.initiate_early_payout(
        c.pool_id,
        requested_by=c.requested_by,
        reason=c.reason,
        confirmation_code=c.confirmation_code,
    ),
    TriggerScheduledPayout: lambda m, c: m.trigger_scheduled_payout(c.pool_id),
    ResolvePayout: lambda m, c: m.resolve_payout(
        c.pool_id,
        c.round_number,
        confirmed=c.confirmed,
        operator=c.operator,
        gateway_ref=c.gateway_ref,
    ),
    ResolveHold: lambda m, c: m.resolve_hold(
        c.pool_id,
        c.hold_id,
        captured=c.captured,
        operator=c.operator,
        capture_ref=c.capture_ref,
    ),
    ClearRoundHalt: lambda m, c: m.clear_round_halt(c.pool_id, c.round_number, operator=c.operator),
    ExpireStaleHolds: lambda m, c: m.expire_stale_holds(c.pool_id),
}


def dispatch(manager: PoolStateManager, command: Any) -> OperationResult:
    handler = HANDLERS.get(type(command))
    if handler is None:
        return OperationResult.failure(
            InvalidConfiguration(
                f"Unknown command: {type(command).__name__}",
                details={"known": sorted(t.__name__ for t in HANDLERS)},
            )
        )
    return handler(manager, command)

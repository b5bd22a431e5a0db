
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Literal, Union
from datetime import datetime

PayoutStatus = Literal["pending", "confirmed", "failed", "unknown"]
EarlyPayoutOutcome = Literal["pending", "approved", "denied"]


@dataclass
class PayoutRecord:
    """
    Release-attempt marker. Persisted with status=pending BEFORE the
    gateway payout call; a pending/unknown record is never retried blindly.
    """
    id: str
    pool_id: str
    round_number: int
    recipient_member_id: str
    method_type: str
    method_handle: str
    gross_amount_cents: int
    fee_cents: int
    net_amount_cents: int
    attempt: int
    status: PayoutStatus
    created_at: datetime
    gateway_ref: Optional[str] = None
    last_error: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


@dataclass(frozen=True)
class PayoutResult:
    pool_id: str
    round_number: int
    recipient_member_id: str
    gross_amount_cents: int
    fee_cents: int
    net_amount_cents: int
    payout_id: str
    gateway_ref: Optional[str]
    early_payout: bool
    released_at: datetime


@dataclass(frozen=True)
class NotReady:
    missing_contributors: tuple[str, ...]
    reason: str = "Not all contributions have been received"
    kind: str = "not_ready"


@dataclass(frozen=True)
class ReadyToRelease:
    recipient_member_id: str
    amount_cents: int
    kind: str = "ready_to_release"


@dataclass(frozen=True)
class AlreadyProcessed:
    result: Optional[PayoutResult]
    kind: str = "already_processed"


PayoutDecision = Union[NotReady, ReadyToRelease, AlreadyProcessed]


@dataclass
class EarlyPayoutRequest:
    id: str
    pool_id: str
    round_number: int
    requested_by: str
    reason: str
    outcome: EarlyPayoutOutcome
    created_at: datetime
    resolved_at: Optional[datetime] = None
    denial_reason: Optional[str] = None

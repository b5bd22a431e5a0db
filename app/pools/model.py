from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Literal, Optional

from app.payouts.model import PayoutResult

Frequency = Literal["weekly", "biweekly", "monthly"]
PoolStatus = Literal["pending", "active", "completed", "paused", "cancelled"]
RoundStatus = Literal["collecting", "ready", "released", "cancelled"]
PayoutMethodType = Literal["venmo", "paypal", "zelle", "cashapp", "bank"]

FREQUENCIES = ("weekly", "biweekly", "monthly")
PAYOUT_METHOD_TYPES = ("venmo", "paypal", "zelle", "cashapp", "bank")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PayoutMethod:
    type: PayoutMethodType
    handle: str


@dataclass
class Member:
    id: str
    display_name: str
    position: int
    contact: Optional[str] = None
    payout_method: Optional[PayoutMethod] = None
    total_received_cents: int = 0


@dataclass
class Pool:
    id: str
    name: str
    members: list[Member]
    contribution_amount_cents: int
    frequency: Frequency
    start_date: date
    current_round: int = 1
    status: PoolStatus = "pending"
    created_at: datetime = field(default_factory=utcnow)

    @property
    def total_rounds(self) -> int:
        # one round per member
        return len(self.members)

    @property
    def payout_amount_cents(self) -> int:
        return self.contribution_amount_cents * len(self.members)

    def member(self, member_id: str) -> Optional[Member]:
        for m in self.members:
            if m.id == member_id:
                return m
        return None

    def members_by_position(self) -> list[Member]:
        return sorted(self.members, key=lambda m: m.position)


@dataclass
class Round:
    pool_id: str
    number: int
    recipient_member_id: str
    scheduled_payout_date: date
    payout_amount_cents: int
    status: RoundStatus = "collecting"
    payout_processed: bool = False
    early_payout: bool = False
    payout_result: Optional[PayoutResult] = None
    halted_reason: Optional[str] = None

    @property
    def id(self) -> str:
        return round_id(self.pool_id, self.number)


def round_id(pool_id: str, number: int) -> str:
    return f"{pool_id}:r{number}"


@dataclass(frozen=True)
class Contribution:
    id: str
    pool_id: str
    round_number: int
    member_id: str
    amount_cents: int
    created_at: datetime
    # None => direct payment, no escrow
    escrow_hold_id: Optional[str] = None

    @property
    def is_direct(self) -> bool:
        return self.escrow_hold_id is None

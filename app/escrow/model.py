from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

HoldState = Literal["authorized", "captured", "voided", "released", "expired"]

# states that still count as money committed to the round
LIVE_STATES = ("authorized", "captured", "released")


@dataclass
class EscrowHold:
    id: str
    pool_id: str
    round_number: int
    member_id: str
    contribution_id: str
    amount_cents: int
    state: HoldState
    created_at: datetime
    release_deadline: datetime
    gateway_ref: Optional[str] = None
    capture_ref: Optional[str] = None
    captured_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    last_error: Optional[str] = None
    # set when a capture/release outcome could not be confirmed
    needs_reconciliation: bool = False

    @property
    def is_live(self) -> bool:
        return self.state in LIVE_STATES


@dataclass(frozen=True)
class EscrowEvent:
    hold_id: str
    pool_id: str
    round_number: int
    from_state: Optional[str]
    to_state: str
    at: datetime
    detail: dict[str, Any] = field(default_factory=dict)

# app/repository/base.py
from __future__ import annotations

from typing import Optional, Protocol

from app.escrow.model import EscrowEvent, EscrowHold
from app.payouts.model import EarlyPayoutRequest, PayoutRecord
from app.pools.model import Contribution, Pool, Round


class Repository(Protocol):
    """
    All persistence the engine needs. Implementations return detached
    copies: mutating a loaded object has no effect until it is saved.
    """

    # pools
    def load_pool(self, pool_id: str) -> Optional[Pool]: ...
    def save_pool(self, pool: Pool) -> None: ...
    def list_pool_ids(self, *, status: Optional[str] = None) -> list[str]: ...

    # rounds
    def load_round(self, pool_id: str, round_number: int) -> Optional[Round]: ...
    def save_round(self, rnd: Round) -> None: ...
    def list_rounds(self, pool_id: str) -> list[Round]: ...

    # contributions (append-only)
    def append_contribution(self, contribution: Contribution) -> None: ...
    def list_contributions(self, pool_id: str, round_number: int) -> list[Contribution]: ...

    # escrow
    def load_hold(self, hold_id: str) -> Optional[EscrowHold]: ...
    def save_hold(self, hold: EscrowHold) -> None: ...
    def list_holds(self, pool_id: str, round_number: Optional[int] = None) -> list[EscrowHold]: ...
    def append_escrow_event(self, event: EscrowEvent) -> None: ...
    def list_escrow_events(self, hold_id: str) -> list[EscrowEvent]: ...

    # payouts
    def load_payout(self, pool_id: str, round_number: int) -> Optional[PayoutRecord]: ...
    def save_payout(self, record: PayoutRecord) -> None: ...
    def list_payouts(self, *, statuses: Optional[tuple[str, ...]] = None) -> list[PayoutRecord]: ...

    # early payout requests (append-only)
    def append_early_payout_request(self, request: EarlyPayoutRequest) -> None: ...
    def list_early_payout_requests(self, pool_id: str) -> list[EarlyPayoutRequest]: ...

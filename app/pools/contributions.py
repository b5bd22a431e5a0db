# app/pools/contributions.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Optional

from app.errors import AmountMismatch, DuplicateContribution, MemberNotFound
from app.pools.model import Contribution, Pool, Round, utcnow
from app.repository.base import Repository


class ContributionTracker:
    """
    Per-round contribution bookkeeping.

    Every member, the round's recipient included, owes one contribution
    per round. A contribution counts while it is direct or its escrow hold
    is still live (authorized/captured/released); voided or expired holds
    free the member to contribute again.
    """

    def __init__(self, repository: Repository, *, clock: Callable[[], datetime] = utcnow):
        self._repo = repository
        self._clock = clock

    def record_contribution(
        self,
        pool: Pool,
        rnd: Round,
        member_id: str,
        amount_cents: int,
        *,
        contribution_id: Optional[str] = None,
        escrow_hold_id: Optional[str] = None,
    ) -> Contribution:
        self.validate(pool, rnd, member_id, amount_cents)

        contribution = Contribution(
            id=contribution_id or str(uuid.uuid4()),
            pool_id=pool.id,
            round_number=rnd.number,
            member_id=member_id,
            amount_cents=int(amount_cents),
            created_at=self._clock(),
            escrow_hold_id=escrow_hold_id,
        )
        self._repo.append_contribution(contribution)
        return contribution

    def validate(self, pool: Pool, rnd: Round, member_id: str, amount_cents: int) -> None:
        """Raises before any money moves; used ahead of escrow authorization."""
        if pool.member(member_id) is None:
            raise MemberNotFound(pool.id, member_id)
        if int(amount_cents) != pool.contribution_amount_cents:
            raise AmountMismatch(
                f"Contribution must be exactly {pool.contribution_amount_cents} cents",
                details={
                    "pool_id": pool.id,
                    "expected_cents": pool.contribution_amount_cents,
                    "got_cents": int(amount_cents),
                },
            )
        if self.has_paid(pool.id, rnd.number, member_id):
            raise DuplicateContribution(
                f"Member {member_id} already contributed to round {rnd.number}",
                details={"pool_id": pool.id, "round_number": rnd.number, "member_id": member_id},
            )

    def live_contributions(self, pool_id: str, round_number: int) -> dict[str, Contribution]:
        """member_id -> live contribution for the round."""
        live: dict[str, Contribution] = {}
        for c in self._repo.list_contributions(pool_id, round_number):
            if self._is_live(c):
                live[c.member_id] = c
        return live

    def has_paid(self, pool_id: str, round_number: int, member_id: str) -> bool:
        return member_id in self.live_contributions(pool_id, round_number)

    def missing_contributors(self, pool: Pool, rnd: Round) -> list[str]:
        paid = self.live_contributions(pool.id, rnd.number)
        return [m.id for m in pool.members_by_position() if m.id not in paid]

    def processing_contributors(self, pool: Pool, rnd: Round) -> list[str]:
        """Members whose escrowed contribution is authorized but not captured yet, in position order."""
        live = self.live_contributions(pool.id, rnd.number)
        processing: list[str] = []
        for m in pool.members_by_position():
            c = live.get(m.id)
            if c is None or c.is_direct:
                continue
            hold = self._repo.load_hold(c.escrow_hold_id)
            if hold is not None and hold.state == "authorized":
                processing.append(m.id)
        return processing

    def all_received(self, pool: Pool, rnd: Round) -> bool:
        return not self.missing_contributors(pool, rnd)

    def received_total_cents(self, pool_id: str, round_number: int) -> int:
        return sum(c.amount_cents for c in self.live_contributions(pool_id, round_number).values())

    def _is_live(self, c: Contribution) -> bool:
        if c.is_direct:
            return True
        hold = self._repo.load_hold(c.escrow_hold_id)
        return hold is not None and hold.is_live

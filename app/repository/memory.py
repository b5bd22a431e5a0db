# app/repository/memory.py
from __future__ import annotations

import copy
import threading
from typing import Optional

from app.escrow.model import EscrowEvent, EscrowHold
from app.payouts.model import EarlyPayoutRequest, PayoutRecord
from app.pools.model import Contribution, Pool, Round


class InMemoryRepository:
    """
    Thread-safe dict-backed repository for tests and local dev.

    State lives in this instance only; it does not survive a restart and
    is not shared across processes. Production uses PostgresRepository.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._pools: dict[str, Pool] = {}
        self._rounds: dict[tuple[str, int], Round] = {}
        self._contributions: list[Contribution] = []
        self._holds: dict[str, EscrowHold] = {}
        self._events: list[EscrowEvent] = []
        # (pool_id, round_number) -> latest attempt
        self._payouts: dict[tuple[str, int], PayoutRecord] = {}
        self._early_requests: list[EarlyPayoutRequest] = []

    # ---- pools ----

    def load_pool(self, pool_id: str) -> Optional[Pool]:
        with self._lock:
            return copy.deepcopy(self._pools.get(pool_id))

    def save_pool(self, pool: Pool) -> None:
        with self._lock:
            self._pools[pool.id] = copy.deepcopy(pool)

    def list_pool_ids(self, *, status: Optional[str] = None) -> list[str]:
        with self._lock:
            return [p.id for p in self._pools.values() if status is None or p.status == status]

    # ---- rounds ----

    def load_round(self, pool_id: str, round_number: int) -> Optional[Round]:
        with self._lock:
            return copy.deepcopy(self._rounds.get((pool_id, round_number)))

    def save_round(self, rnd: Round) -> None:
        with self._lock:
            self._rounds[(rnd.pool_id, rnd.number)] = copy.deepcopy(rnd)

    def list_rounds(self, pool_id: str) -> list[Round]:
        with self._lock:
            rounds = [r for (pid, _), r in self._rounds.items() if pid == pool_id]
            return [copy.deepcopy(r) for r in sorted(rounds, key=lambda r: r.number)]

    # ---- contributions ----

    def append_contribution(self, contribution: Contribution) -> None:
        with self._lock:
            self._contributions.append(contribution)

    def list_contributions(self, pool_id: str, round_number: int) -> list[Contribution]:
        with self._lock:
            return [
                c for c in self._contributions
                if c.pool_id == pool_id and c.round_number == round_number
            ]

    # ---- escrow ----

    def load_hold(self, hold_id: str) -> Optional[EscrowHold]:
        with self._lock:
            return copy.deepcopy(self._holds.get(hold_id))

    def save_hold(self, hold: EscrowHold) -> None:
        with self._lock:
            self._holds[hold.id] = copy.deepcopy(hold)

    def list_holds(self, pool_id: str, round_number: Optional[int] = None) -> list[EscrowHold]:
        with self._lock:
            return [
                copy.deepcopy(h) for h in self._holds.values()
                if h.pool_id == pool_id and (round_number is None or h.round_number == round_number)
            ]

    def append_escrow_event(self, event: EscrowEvent) -> None:
        with self._lock:
            self._events.append(event)

    def list_escrow_events(self, hold_id: str) -> list[EscrowEvent]:
        with self._lock:
            return [e for e in self._events if e.hold_id == hold_id]

    # ---- payouts ----

    def load_payout(self, pool_id: str, round_number: int) -> Optional[PayoutRecord]:
        with self._lock:
            return copy.deepcopy(self._payouts.get((pool_id, round_number)))

    def save_payout(self, record: PayoutRecord) -> None:
        with self._lock:
            self._payouts[(record.pool_id, record.round_number)] = copy.deepcopy(record)

    def list_payouts(self, *, statuses: Optional[tuple[str, ...]] = None) -> list[PayoutRecord]:
        with self._lock:
            return [
                copy.deepcopy(p) for p in self._payouts.values()
                if statuses is None or p.status in statuses
            ]

    # ---- early payout requests ----

    def append_early_payout_request(self, request: EarlyPayoutRequest) -> None:
        with self._lock:
            self._early_requests.append(copy.deepcopy(request))

    def list_early_payout_requests(self, pool_id: str) -> list[EarlyPayoutRequest]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._early_requests if r.pool_id == pool_id]

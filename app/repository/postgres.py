# app/repository/postgres.py
from __future__ import annotations

from typing import Any, Callable, Optional

from psycopg2.extras import Json, RealDictCursor

from app.escrow.model import EscrowEvent, EscrowHold
from app.payouts.model import EarlyPayoutRequest, PayoutRecord
from app.pools.model import Contribution, Pool, Round
from app.repository.codec import from_doc, to_doc


class PostgresRepository:
    """
    Repository over the `tanda` schema (see alembic 0001_baseline_schema).

    Each entity is one row: key columns for lookups plus the full JSONB
    document. Every call runs in its own transaction from `get_conn`;
    round-level exclusion comes from RoundLocks, not from here.
    """

    def __init__(self, get_conn: Callable[..., Any]):
        self._get_conn = get_conn

    def _one(self, sql: str, params: tuple) -> Optional[dict[str, Any]]:
        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                return cur.fetchone()

    def _all(self, sql: str, params: tuple) -> list[dict[str, Any]]:
        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                return list(cur.fetchall())

    def _exec(self, sql: str, params: tuple) -> None:
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)

    # ---- pools ----

    def load_pool(self, pool_id: str) -> Optional[Pool]:
        row = self._one("SELECT doc FROM tanda.pools WHERE id = %s", (pool_id,))
        return from_doc(Pool, row["doc"]) if row else None

    def save_pool(self, pool: Pool) -> None:
        self._exec(
            """
            INSERT INTO tanda.pools (id, status, current_round, doc, version)
            VALUES (%s, %s, %s, %s, 1)
            ON CONFLICT (id) DO UPDATE
              SET status = EXCLUDED.status,
                  current_round = EXCLUDED.current_round,
                  doc = EXCLUDED.doc,
                  version = tanda.pools.version + 1,
                  updated_at = now()
            """,
            (pool.id, pool.status, pool.current_round, Json(to_doc(pool))),
        )

    def list_pool_ids(self, *, status: Optional[str] = None) -> list[str]:
        if status is None:
            rows = self._all("SELECT id FROM tanda.pools ORDER BY created_at", ())
        else:
            rows = self._all("SELECT id FROM tanda.pools WHERE status = %s ORDER BY created_at", (status,))
        return [r["id"] for r in rows]

    # ---- rounds ----

    def load_round(self, pool_id: str, round_number: int) -> Optional[Round]:
        row = self._one(
            "SELECT doc FROM tanda.rounds WHERE pool_id = %s AND number = %s",
            (pool_id, round_number),
        )
        return from_doc(Round, row["doc"]) if row else None

    def save_round(self, rnd: Round) -> None:
        self._exec(
            """
            INSERT INTO tanda.rounds (pool_id, number, status, payout_processed, halted, doc)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (pool_id, number) DO UPDATE
              SET status = EXCLUDED.status,
                  payout_processed = EXCLUDED.payout_processed,
                  halted = EXCLUDED.halted,
                  doc = EXCLUDED.doc,
                  updated_at = now()
            """,
            (rnd.pool_id, rnd.number, rnd.status, rnd.payout_processed, bool(rnd.halted_reason), Json(to_doc(rnd))),
        )

    def list_rounds(self, pool_id: str) -> list[Round]:
        rows = self._all("SELECT doc FROM tanda.rounds WHERE pool_id = %s ORDER BY number", (pool_id,))
        return [from_doc(Round, r["doc"]) for r in rows]

    # ---- contributions ----

    def append_contribution(self, contribution: Contribution) -> None:
        self._exec(
            """
            INSERT INTO tanda.contributions (id, pool_id, round_number, member_id, escrow_hold_id, doc)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (
                contribution.id,
                contribution.pool_id,
                contribution.round_number,
                contribution.member_id,
                contribution.escrow_hold_id,
                Json(to_doc(contribution)),
            ),
        )

    def list_contributions(self, pool_id: str, round_number: int) -> list[Contribution]:
        rows = self._all(
            "SELECT doc FROM tanda.contributions WHERE pool_id = %s AND round_number = %s ORDER BY created_at",
            (pool_id, round_number),
        )
        return [from_doc(Contribution, r["doc"]) for r in rows]

    # ---- escrow ----

    def load_hold(self, hold_id: str) -> Optional[EscrowHold]:
        row = self._one("SELECT doc FROM tanda.escrow_holds WHERE id = %s", (hold_id,))
        return from_doc(EscrowHold, row["doc"]) if row else None

    def save_hold(self, hold: EscrowHold) -> None:
        self._exec(
            """
            INSERT INTO tanda.escrow_holds (id, pool_id, round_number, member_id, state, needs_reconciliation, doc)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE
              SET state = EXCLUDED.state,
                  needs_reconciliation = EXCLUDED.needs_reconciliation,
                  doc = EXCLUDED.doc,
                  updated_at = now()
            """,
            (
                hold.id,
                hold.pool_id,
                hold.round_number,
                hold.member_id,
                hold.state,
                hold.needs_reconciliation,
                Json(to_doc(hold)),
            ),
        )

    def list_holds(self, pool_id: str, round_number: Optional[int] = None) -> list[EscrowHold]:
        if round_number is None:
            rows = self._all("SELECT doc FROM tanda.escrow_holds WHERE pool_id = %s ORDER BY created_at", (pool_id,))
        else:
            rows = self._all(
                "SELECT doc FROM tanda.escrow_holds WHERE pool_id = %s AND round_number = %s ORDER BY created_at",
                (pool_id, round_number),
            )
        return [from_doc(EscrowHold, r["doc"]) for r in rows]

    def append_escrow_event(self, event: EscrowEvent) -> None:
        self._exec(
            """
            INSERT INTO tanda.escrow_events (hold_id, pool_id, round_number, from_state, to_state, at, detail)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                event.hold_id,
                event.pool_id,
                event.round_number,
                event.from_state,
                event.to_state,
                event.at,
                Json(to_doc(event)["detail"]),
            ),
        )

    def list_escrow_events(self, hold_id: str) -> list[EscrowEvent]:
        rows = self._all(
            """
            SELECT hold_id, pool_id, round_number, from_state, to_state, at, detail
            FROM tanda.escrow_events
            WHERE hold_id = %s
            ORDER BY id
            """,
            (hold_id,),
        )
        return [from_doc(EscrowEvent, dict(r)) for r in rows]

    # ---- payouts ----

    def load_payout(self, pool_id: str, round_number: int) -> Optional[PayoutRecord]:
        row = self._one(
            """
            SELECT doc FROM tanda.payouts
            WHERE pool_id = %s AND round_number = %s
            ORDER BY attempt DESC
            LIMIT 1
            """,
            (pool_id, round_number),
        )
        return from_doc(PayoutRecord, row["doc"]) if row else None

    def save_payout(self, record: PayoutRecord) -> None:
        self._exec(
            """
            INSERT INTO tanda.payouts (id, pool_id, round_number, attempt, status, doc)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE
              SET status = EXCLUDED.status,
                  doc = EXCLUDED.doc,
                  updated_at = now()
            """,
            (record.id, record.pool_id, record.round_number, record.attempt, record.status, Json(to_doc(record))),
        )

    def list_payouts(self, *, statuses: Optional[tuple[str, ...]] = None) -> list[PayoutRecord]:
        if statuses is None:
            rows = self._all("SELECT doc FROM tanda.payouts ORDER BY created_at", ())
        else:
            rows = self._all(
                "SELECT doc FROM tanda.payouts WHERE status = ANY(%s) ORDER BY created_at",
                (list(statuses),),
            )
        return [from_doc(PayoutRecord, r["doc"]) for r in rows]

    # ---- early payout requests ----

    def append_early_payout_request(self, request: EarlyPayoutRequest) -> None:
        self._exec(
            """
            INSERT INTO tanda.early_payout_requests (id, pool_id, round_number, outcome, doc)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (request.id, request.pool_id, request.round_number, request.outcome, Json(to_doc(request))),
        )

    def list_early_payout_requests(self, pool_id: str) -> list[EarlyPayoutRequest]:
        rows = self._all(
            "SELECT doc FROM tanda.early_payout_requests WHERE pool_id = %s ORDER BY created_at",
            (pool_id,),
        )
        return [from_doc(EarlyPayoutRequest, r["doc"]) for r in rows]

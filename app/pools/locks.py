"""
Per-round mutual exclusion.

Only one payout trigger may run per (pool, round) at a time, and the
payout_processed check-and-set happens inside that scope. Contribution
recording takes a narrower per-member scope so different members can pay
concurrently. pool_scope guards writes to the pool document itself and
is always taken innermost.

Usage:
    with locks.round_scope(pool_id, round_number):
        rnd = repo.load_round(pool_id, round_number)
        if not rnd.payout_processed:
            ...
"""
from __future__ import annotations

import hashlib
import threading
from contextlib import contextmanager
from typing import Iterator, Protocol


class RoundLocks(Protocol):
    def round_scope(self, pool_id: str, round_number: int): ...
    def member_scope(self, pool_id: str, round_number: int, member_id: str): ...
    def pool_scope(self, pool_id: str): ...


class InProcessRoundLocks:
    """
    threading.Lock per key; correct for a single API process.
    Entries are reference counted and dropped once no thread holds or waits on them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders + waiters]
        self._locks: dict[tuple, list] = {}

    @contextmanager
    def _scope(self, key: tuple) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def round_scope(self, pool_id: str, round_number: int):
        return self._scope(("round", pool_id, round_number))

    def member_scope(self, pool_id: str, round_number: int, member_id: str):
        return self._scope(("member", pool_id, round_number, member_id))

    def pool_scope(self, pool_id: str):
        return self._scope(("pool", pool_id))


def _advisory_key(*parts: object) -> int:
    # pg advisory locks take a signed bigint
    digest = hashlib.sha256("|".join(str(p) for p in parts).encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class AdvisoryRoundLocks:
    """
    PostgreSQL session advisory locks, for several API/worker instances
    sharing one database. pg_advisory_lock waits (no nowait) like
    SELECT ... FOR UPDATE.

    Connection budget per process: a thread inside any scope holds one
    lock session (nested scopes reuse it) plus one short-lived connection
    per repository call. At most `max_sessions` threads hold a lock
    session; the rest wait in-process without a connection. Keep
    2 * max_sessions below the pool's maxconn (db.POOL_MAX_CONN).
    """

    def __init__(self, get_conn, *, max_sessions: int = 8):
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self._get_conn = get_conn
        self._sessions = threading.BoundedSemaphore(max_sessions)
        self._local = threading.local()

    @contextmanager
    def _scope(self, key: int) -> Iterator[None]:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            with self._locked(conn, key):
                yield
            return

        with self._sessions:
            with self._get_conn(statement_timeout_ms=0, autocommit=True) as conn:
                self._local.conn = conn
                try:
                    with self._locked(conn, key):
                        yield
                finally:
                    self._local.conn = None

    @staticmethod
    @contextmanager
    def _locked(conn, key: int) -> Iterator[None]:
        with conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_lock(%s);", (key,))
        try:
            yield
        finally:
            with conn.cursor() as cur:
                cur.execute("SELECT pg_advisory_unlock(%s);", (key,))

    def round_scope(self, pool_id: str, round_number: int):
        return self._scope(_advisory_key("round", pool_id, round_number))

    def member_scope(self, pool_id: str, round_number: int, member_id: str):
        return self._scope(_advisory_key("member", pool_id, round_number, member_id))

    def pool_scope(self, pool_id: str):
        return self._scope(_advisory_key("pool", pool_id))

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

import db
from app.pools.locks import AdvisoryRoundLocks, InProcessRoundLocks
from settings import settings


class _Cursor:
    def __init__(self, log):
        self._log = log

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self._log.append((sql.split("(")[0], params[0]))


class _Connections:
    """get_conn stand-in that counts connections checked out at the same time."""

    def __init__(self):
        self._lock = threading.Lock()
        self.open = 0
        self.peak = 0
        self.sql = []

    @contextmanager
    def get_conn(self, **kwargs):
        with self._lock:
            self.open += 1
            self.peak = max(self.peak, self.open)
        try:
            yield SimpleNamespace(cursor=lambda: _Cursor(self.sql))
        finally:
            with self._lock:
                self.open -= 1


# ---------------------------
# In-process
# ---------------------------

def test_in_process_locks_are_dropped_after_use():
    locks = InProcessRoundLocks()
    with locks.member_scope("p1", 1, "m2"):
        with locks.round_scope("p1", 1):
            with locks.pool_scope("p1"):
                assert len(locks._locks) == 3
    assert locks._locks == {}


def test_in_process_round_scope_is_exclusive():
    locks = InProcessRoundLocks()
    inside = []
    peak = [0]

    def enter(_):
        with locks.round_scope("p1", 1):
            inside.append(1)
            peak[0] = max(peak[0], len(inside))
            time.sleep(0.005)
            inside.pop()

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(enter, range(12)))

    assert peak[0] == 1
    assert locks._locks == {}


def test_in_process_lock_released_on_error():
    locks = InProcessRoundLocks()
    with pytest.raises(RuntimeError):
        with locks.round_scope("p1", 1):
            raise RuntimeError("boom")
    with locks.round_scope("p1", 1):
        pass
    assert locks._locks == {}


# ---------------------------
# Advisory (postgres)
# ---------------------------

def test_nested_advisory_scopes_share_one_session():
    conns = _Connections()
    locks = AdvisoryRoundLocks(conns.get_conn)

    with locks.round_scope("p1", 1):
        with locks.pool_scope("p1"):
            assert conns.open == 1

    assert conns.open == 0
    assert [stmt for stmt, _ in conns.sql] == [
        "SELECT pg_advisory_lock",
        "SELECT pg_advisory_lock",
        "SELECT pg_advisory_unlock",
        "SELECT pg_advisory_unlock",
    ]


def test_advisory_sessions_are_capped():
    conns = _Connections()
    locks = AdvisoryRoundLocks(conns.get_conn, max_sessions=2)

    def hold(n):
        with locks.round_scope("p1", n):
            time.sleep(0.02)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(hold, range(8)))

    assert conns.peak == 2
    assert conns.open == 0


def test_advisory_session_freed_after_error():
    conns = _Connections()
    locks = AdvisoryRoundLocks(conns.get_conn, max_sessions=1)

    with pytest.raises(RuntimeError):
        with locks.round_scope("p1", 1):
            raise RuntimeError("boom")

    with locks.round_scope("p1", 2):
        assert conns.open == 1
    assert conns.open == 0


def test_default_lock_sessions_fit_the_connection_pool():
    assert 2 * settings.LOCK_MAX_SESSIONS < db.POOL_MAX_CONN

# tests/conftest.py

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient

from app.config import EngineConfig
from app.gateway.mock import MockGateway
from app.notifications import RecordingNotificationSink
from app.pools.manager import PoolStateManager
from app.pools.model import Member, PayoutMethod
from app.repository.memory import InMemoryRepository
from deps.engine import get_manager
from main import app


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
START_DATE = date(2026, 1, 10)


class FixedClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def on(self, d: date, hour: int = 12) -> None:
        self.now = datetime(d.year, d.month, d.day, hour, tzinfo=timezone.utc)


def make_members(n: int = 4, *, with_methods: bool = True) -> list[Member]:
    return [
        Member(
            id=f"m{i}",
            display_name=f"Member {i}",
            position=i,
            contact=f"m{i}@example.com",
            payout_method=PayoutMethod(type="venmo", handle=f"@member-{i}") if with_methods else None,
        )
        for i in range(1, n + 1)
    ]


# ---------------------------
# Engine fixtures
# ---------------------------

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def gateway() -> MockGateway:
    return MockGateway()


@pytest.fixture
def notifications() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(authorize_backoff_seconds=0)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def make_manager(repo, gateway, notifications, config, clock, sleeps) -> Callable[..., PoolStateManager]:
    def _make(**overrides) -> PoolStateManager:
        kwargs = dict(
            config=config,
            notifications=notifications,
            clock=clock,
            sleep=sleeps.append,
        )
        kwargs.update(overrides)
        return PoolStateManager(repo, gateway, **kwargs)

    return _make


@pytest.fixture
def manager(make_manager) -> PoolStateManager:
    return make_manager()


@pytest.fixture
def make_pool(manager) -> Callable[..., str]:
    def _make(
        n: int = 4,
        *,
        amount_cents: int = 5000,
        frequency: str = "weekly",
        start_date: date = START_DATE,
        with_methods: bool = True,
        members: Optional[list[Member]] = None,
        start: bool = True,
        pool_id: Optional[str] = None,
    ) -> str:
        res = manager.create_pool(
            name="Family tanda",
            members=members or make_members(n, with_methods=with_methods),
            contribution_amount_cents=amount_cents,
            frequency=frequency,
            start_date=start_date,
            pool_id=pool_id,
        )
        assert res.ok, res.error
        pid = res.data["pool"]["id"]
        if start:
            started = manager.start_pool(pid)
            assert started.ok, started.error
        return pid

    return _make


def contribute_all(manager: PoolStateManager, pool_id: str, *, amount_cents: int = 5000, escrow: bool = False, skip=()):
    pool = manager.repository.load_pool(pool_id)
    for m in pool.members_by_position():
        if m.id in skip:
            continue
        res = manager.record_contribution(
            pool_id,
            m.id,
            amount_cents,
            payer_ref=f"card-{m.id}" if escrow else None,
        )
        assert res.ok, res.error


# ---------------------------
# Client
# ---------------------------

@pytest.fixture
def client(manager) -> TestClient:
    app.dependency_overrides[get_manager] = lambda: manager
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


OPERATOR = {"X-Operator-Id": "op-ana"}

# deps/engine.py
from __future__ import annotations

from functools import lru_cache

from app.config import EngineConfig
from app.gateway.factory import get_gateway
from app.notifications import get_notification_sink
from app.pools.locks import AdvisoryRoundLocks, InProcessRoundLocks
from app.pools.manager import PoolStateManager
from app.repository.memory import InMemoryRepository
from app.verification import get_code_verifier
from settings import settings


def build_manager(s=settings) -> PoolStateManager:
    """Wires the engine from settings; the engine itself never reads them."""
    if s.REPOSITORY_BACKEND == "postgres":
        from app.repository.postgres import PostgresRepository
        from db import get_conn

        repository = PostgresRepository(get_conn)
        locks = AdvisoryRoundLocks(get_conn, max_sessions=s.LOCK_MAX_SESSIONS)
    else:
        repository = InMemoryRepository()
        locks = InProcessRoundLocks()

    return PoolStateManager(
        repository,
        get_gateway(s),
        config=EngineConfig.from_settings(s),
        locks=locks,
        notifications=get_notification_sink(s),
        verifier=get_code_verifier(s),
    )


@lru_cache(maxsize=1)
def get_manager() -> PoolStateManager:
    return build_manager(settings)

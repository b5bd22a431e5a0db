import psycopg2
from psycopg2.pool import ThreadedConnectionPool
from contextlib import contextmanager
from settings import settings
import psycopg2.extras
_pool: ThreadedConnectionPool | None = None

POOL_MAX_CONN = 20


def init_pool():
    """
    Initialize the PostgreSQL connection pool.
    Called once at app startup.
    """
    psycopg2.extras.register_uuid()
    global _pool
    if _pool is None:
        _pool = ThreadedConnectionPool(
            minconn=1,
            maxconn=POOL_MAX_CONN,
            dsn=settings.DATABASE_URL,
            connect_timeout=5,
        )


def close_pool():
    """
    Gracefully close all pooled connections.
    """
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn(*, statement_timeout_ms: int = 5000, autocommit: bool = False):
    """
    Provides a transactional DB connection.
    Auto-commits on success, rolls back on error.

    statement_timeout_ms=0 disables the timeout (advisory lock waits).
    """
    if _pool is None:
        init_pool()

    conn = _pool.getconn()
    conn.autocommit = autocommit

    try:
        with conn.cursor() as cur:
            cur.execute("SET statement_timeout = %s;", (f"{int(statement_timeout_ms)}ms",))
            if not autocommit:
                cur.execute("SET idle_in_transaction_session_timeout = '5000ms';")
            cur.execute("SET application_name = 'tanda_engine';")

        yield conn
        if not autocommit:
            conn.commit()

    except Exception:
        if not autocommit:
            conn.rollback()
        raise

    finally:
        conn.autocommit = False
        _pool.putconn(conn)

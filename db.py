# db.py
import threading
from contextlib import contextmanager

import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from settings import settings

_pool: ThreadedConnectionPool | None = None
_pool_lock = threading.Lock()


def init_pool() -> ThreadedConnectionPool:
    """
    Create the shared pool on first use. The API serves requests from a thread
    pool, so the threaded variant is required.
    """
    global _pool
    with _pool_lock:
        if _pool is None:
            if not settings.DATABASE_URL:
                raise RuntimeError("DATABASE_URL is not set.")
            psycopg2.extras.register_uuid()
            _pool = ThreadedConnectionPool(
                minconn=1,
                maxconn=settings.DB_POOL_MAX,
                dsn=settings.DATABASE_URL,
                connect_timeout=5,
            )
        return _pool


def close_pool():
    global _pool
    with _pool_lock:
        if _pool:
            _pool.closeall()
            _pool = None


def _apply_session_limits(conn) -> None:
    # a stuck wallet row lock must surface as an error, not a hung request
    with conn.cursor() as cur:
        cur.execute("SET statement_timeout = %s;", (f"{int(settings.DB_STATEMENT_TIMEOUT_MS)}ms",))
        cur.execute("SET lock_timeout = %s;", (f"{int(settings.DB_LOCK_TIMEOUT_MS)}ms",))
        cur.execute("SET idle_in_transaction_session_timeout = '5000ms';")
        cur.execute("SET application_name = 'affiliatehub_api';")


@contextmanager
def get_conn():
    """
    One transaction per checkout: commit when the block exits cleanly,
    roll back on any exception.
    """
    pool = _pool or init_pool()
    conn = pool.getconn()
    try:
        _apply_session_limits(conn)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)

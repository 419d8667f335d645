import logging
from contextlib import contextmanager
from typing import Iterator

from psycopg import Connection
from psycopg_pool import ConnectionPool

from .settings import settings

logger = logging.getLogger(__name__)

# Opened by the app lifespan; scripts and tests never touch the network on import.
pool = ConnectionPool(
    conninfo=settings.DATABASE_URL,
    min_size=settings.DB_POOL_MIN_SIZE,
    max_size=settings.DB_POOL_MAX_SIZE,
    open=False,
)

def open_pool() -> None:
    pool.open()
    logger.info("Database pool opened (min=%s, max=%s)", pool.min_size, pool.max_size)

def close_pool() -> None:
    pool.close()
    logger.info("Database pool closed")

@contextmanager
def get_conn() -> Iterator[Connection]:
    """
    Borrow a pooled connection scoped to the configured org.

    Row level security policies read the app.org_id GUC, so it is set on every
    checkout. The pool commits on clean exit and rolls back on error.
    """
    with pool.connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT set_config('app.org_id', %s, true)", (settings.ORG_ID,))
        yield conn

def db_ok() -> bool:
    try:
        with pool.connection(timeout=2) as conn, conn.cursor() as cur:
            cur.execute('select 1;')
            cur.fetchone()
        return True
    except Exception:
        logger.exception("Database health check failed")
        return False

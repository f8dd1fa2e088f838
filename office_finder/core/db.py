"""Postgres connections shared by the profile store and the semantic index.

Store calls run in `asyncio.to_thread` workers, so the pool is shared across
threads and callers queue for a free connection instead of failing when all
of them are checked out.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional

from psycopg2 import pool

from office_finder.core.config import get_settings
from office_finder.core.errors import ConfigError, DataSourceError

logger = logging.getLogger(__name__)


class BoundedConnectionPool:
    """`ThreadedConnectionPool` whose callers wait for a slot once every connection is in use."""

    def __init__(self, dsn: str, size: int, acquire_timeout: float = 30.0) -> None:
        self.size = size
        self.acquire_timeout = acquire_timeout
        self._pool = pool.ThreadedConnectionPool(1, size, dsn=dsn, connect_timeout=10)
        self._slots = threading.BoundedSemaphore(size)

    @contextmanager
    def connection(self):
        if not self._slots.acquire(timeout=self.acquire_timeout):
            raise DataSourceError(f"no database connection free after {self.acquire_timeout:.0f}s")
        try:
            conn = self._pool.getconn()
            try:
                yield conn
            finally:
                self._pool.putconn(conn)
        finally:
            self._slots.release()

    def close(self) -> None:
        self._pool.closeall()


_shared_pool: Optional[BoundedConnectionPool] = None
_init_lock = threading.Lock()


def init_pool() -> BoundedConnectionPool:
    """Create the process-wide pool on first use."""
    global _shared_pool
    with _init_lock:
        if _shared_pool is None:
            settings = get_settings()
            if not settings.database_url:
                raise ConfigError("DATABASE_URL is required for database connections")
            _shared_pool = BoundedConnectionPool(settings.database_url, settings.db_pool_size)
            logger.info("Database pool ready with up to %d connections", settings.db_pool_size)
    return _shared_pool


@contextmanager
def get_connection():
    with init_pool().connection() as conn:
        yield conn

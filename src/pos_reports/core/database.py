"""
Database access for the reports.

Tortoise ORM owns the driver level pool. On top of it the ConnectionProvider
lends a client to one query at a time, bounded by a FIFO slot count, an
acquisition timeout and a per-query timeout, and always gives the slot back.
DatabaseStatusCache replaces a process wide "database ready" flag with an
object that is created once per app and handed to whoever needs it.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Optional, TypeVar

from fastapi import Request
from tortoise import connections
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.exceptions import ConfigurationError, DBConnectionError, OperationalError

from .config import (
    DATABASE_URL, DB_POOL_SIZE, DB_ACQUIRE_TIMEOUT_SECONDS,
    DB_QUERY_TIMEOUT_SECONDS, DB_STATUS_CACHE_TTL_SECONDS,
)
from .exceptions import DataSourceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MODEL_MODULES = [
    "pos_reports.features.catalog.models",
    "pos_reports.features.customers.models",
    "pos_reports.features.orders.models",
]


def build_tortoise_config(db_url: str = DATABASE_URL) -> dict:
    return {
        "connections": {"default": db_url},
        "apps": {
            "models": {  # App label, referenced as "models.<Model>" in relations
                "models": MODEL_MODULES,
                "default_connection": "default",
            }
        },
        "use_tz": False,
        "timezone": "UTC",
    }


class ConnectionProvider:
    """
    Lends the Tortoise client for the named connection, one query at a time.

    Slots are handed out first come, first served. Waiting longer than
    `acquire_timeout` for a slot, or a query running longer than
    `query_timeout`, raises DataSourceUnavailableError instead of hanging
    the request. Nothing is retried here.
    """

    def __init__(
        self,
        connection_name: str = "default",
        pool_size: int = DB_POOL_SIZE,
        acquire_timeout: float = DB_ACQUIRE_TIMEOUT_SECONDS,
        query_timeout: float = DB_QUERY_TIMEOUT_SECONDS,
    ):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.connection_name = connection_name
        self.pool_size = pool_size
        self.acquire_timeout = acquire_timeout
        self.query_timeout = query_timeout
        self._slots = asyncio.Semaphore(pool_size)
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[BaseDBAsyncClient]:
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"No slot on connection '{self.connection_name}' after {self.acquire_timeout}s "
                f"({self._in_use}/{self.pool_size} in use)"
            )
            raise DataSourceUnavailableError(
                f"No database connection available within {self.acquire_timeout} seconds"
            ) from None

        self._in_use += 1
        logger.debug(f"Acquired '{self.connection_name}' ({self._in_use}/{self.pool_size} in use)")
        try:
            try:
                client = connections.get(self.connection_name)
            except (ConfigurationError, KeyError) as e:
                logger.error(f"Connection '{self.connection_name}' is not configured: {e}")
                raise DataSourceUnavailableError(
                    f"Database connection '{self.connection_name}' is not available"
                ) from e
            yield client
        finally:
            self._in_use -= 1
            self._slots.release()
            logger.debug(f"Released '{self.connection_name}' ({self._in_use}/{self.pool_size} in use)")

    async def run(
        self,
        query: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Runs `query(client, *args, **kwargs)` on a lent connection under the per-query timeout."""
        async with self.connection() as client:
            try:
                return await asyncio.wait_for(query(client, *args, **kwargs), timeout=self.query_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Query {getattr(query, '__name__', query)!r} timed out after {self.query_timeout}s")
                raise DataSourceUnavailableError(
                    f"Database query did not finish within {self.query_timeout} seconds"
                ) from None
            except DBConnectionError as e:
                logger.warning(f"Lost connection '{self.connection_name}': {e}")
                raise DataSourceUnavailableError("Lost connection to the database") from e


class DatabaseStatusCache:
    """
    Remembers whether the database was ready for `ttl_seconds`.

    `invalidate()` forgets the stored answer so the next `is_ready()` call
    probes again.
    """

    def __init__(
        self,
        ttl_seconds: float = DB_STATUS_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._ready: Optional[bool] = None
        self._checked_at: Optional[float] = None

    def get(self) -> Optional[bool]:
        """Returns the cached status, or None when there is none or it expired."""
        if self._ready is None or self._checked_at is None:
            return None
        if self._clock() - self._checked_at >= self.ttl_seconds:
            return None
        return self._ready

    def set(self, ready: bool) -> None:
        self._ready = ready
        self._checked_at = self._clock()

    def invalidate(self) -> None:
        self._ready = None
        self._checked_at = None

    async def is_ready(self, probe: Callable[[], Awaitable[bool]]) -> bool:
        cached = self.get()
        if cached is not None:
            return cached
        ready = await probe()
        self.set(ready)
        return ready


async def _select_one_product(client: BaseDBAsyncClient) -> bool:
    await client.execute_query("SELECT id FROM products LIMIT 1")
    return True


async def check_database_ready(provider: ConnectionProvider) -> bool:
    """True when the products table can be read through the provider."""
    try:
        return await provider.run(_select_one_product)
    except DataSourceUnavailableError as e:
        logger.warning(f"Database not ready: {e.message}")
        return False
    except OperationalError as e:
        # Usually a missing table on a database that was never migrated
        logger.warning(f"Database reachable but not ready: {e}")
        return False


# FastAPI dependencies. The instances live on app.state, created in main.py,
# so tests can swap them with app.dependency_overrides.
def get_connection_provider(request: Request) -> ConnectionProvider:
    return request.app.state.connection_provider


def get_database_status_cache(request: Request) -> DatabaseStatusCache:
    return request.app.state.database_status_cache

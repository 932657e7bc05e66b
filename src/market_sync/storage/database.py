"""
Async PostgreSQL access for the market record store.

One asyncpg pool serves every repository in the process. Repositories only
issue single statements, so a connection is held for exactly one query and
never across other I/O.

Lost connections are handled in two layers:
    - a statement that fails with a connection-level error is re-run with
      backoff (retry_attempts)
    - a pool dropped after such an error is rebuilt on next use, also with
      backoff (reconnect_attempts)
Statement errors (bad SQL, constraint violations) are never retried.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Iterator, Optional

import asyncpg
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Errors meaning the connection went away, as opposed to a bad statement
CONNECTION_ERRORS = (
    asyncpg.InterfaceError,
    asyncpg.ConnectionDoesNotExistError,
    asyncpg.ConnectionFailureError,
    ConnectionResetError,
    ConnectionRefusedError,
    OSError,
)


def backoff_delays(initial: float, maximum: float, attempts: int) -> Iterator[Optional[float]]:
    """Yield the pause after each of `attempts` tries; None after the last."""
    delay = initial
    for _ in range(attempts - 1):
        yield delay
        delay = min(delay * 2, maximum)
    yield None


class DatabaseConfig(BaseModel):
    """Pool sizing and connection-loss handling for the record store."""

    model_config = ConfigDict(frozen=True)

    url: str
    min_connections: int = 1
    max_connections: int = 5
    command_timeout: float = 30.0

    # Rebuilding a dropped pool
    reconnect_attempts: int = 5
    reconnect_initial_delay: float = 1.0
    reconnect_max_delay: float = 30.0

    # Re-running a statement that lost its connection
    retry_attempts: int = 3
    retry_initial_delay: float = 0.1
    retry_max_delay: float = 2.0


class Database:
    """
    Pool owner for the markets and pipeline_job_runs tables.

    Usage:
        db = Database(DatabaseConfig(url=config.database_url))
        await db.initialize()
        row = await db.fetchrow("SELECT * FROM markets WHERE market_id = $1", 7)
        await db.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._pool is not None and not self._pool._closed

    async def _open_pool(self) -> asyncpg.Pool:
        return await asyncpg.create_pool(
            self.config.url,
            min_size=self.config.min_connections,
            max_size=self.config.max_connections,
            command_timeout=self.config.command_timeout,
        )

    async def initialize(self) -> None:
        if self._pool is not None:
            return
        self._pool = await self._open_pool()
        logger.info(
            f"Record store pool open "
            f"({self.config.min_connections}-{self.config.max_connections} connections)"
        )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Record store pool closed")

    async def _discard_pool(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        try:
            await pool.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing broken pool: {e}")

    async def _reopen(self) -> None:
        """Rebuild a dropped pool, backing off between attempts."""
        async with self._pool_lock:
            if self.is_connected:
                return

            attempts = self.config.reconnect_attempts
            delays = backoff_delays(
                self.config.reconnect_initial_delay, self.config.reconnect_max_delay, attempts
            )
            for attempt, delay in enumerate(delays, start=1):
                try:
                    self._pool = await self._open_pool()
                    async with self._pool.acquire() as conn:
                        await conn.fetchval("SELECT 1")
                    logger.info(f"Record store pool reopened on attempt {attempt}")
                    return
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(f"Reopening pool failed ({attempt}/{attempts}): {e}")
                    await self._discard_pool()
                    if delay is not None:
                        await asyncio.sleep(delay)

            raise RuntimeError(f"Could not reopen record store pool after {attempts} attempts")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection; a connection-level failure discards the pool."""
        if not self.is_connected:
            await self._reopen()

        try:
            async with self._pool.acquire() as conn:
                yield conn
        except CONNECTION_ERRORS as e:
            logger.warning(f"Record store connection lost: {e}")
            await self._discard_pool()
            raise

    async def health_check(self) -> bool:
        """True if SELECT 1 succeeds on the current pool. Never reopens it."""
        if not self.is_connected:
            return False
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.warning(f"Record store health check failed: {e}")
            return False

    async def _with_retry(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run operation, re-running it after connection-level failures."""
        attempts = self.config.retry_attempts
        delays = backoff_delays(
            self.config.retry_initial_delay, self.config.retry_max_delay, attempts
        )
        for attempt, delay in enumerate(delays, start=1):
            try:
                return await operation()
            except CONNECTION_ERRORS as e:
                if delay is None:
                    logger.error(f"Statement failed after {attempts} attempts: {e}")
                    raise
                logger.warning(f"Connection error on attempt {attempt}: {e}, retrying in {delay:.2f}s")
                await asyncio.sleep(delay)

    async def _call(self, method: str, query: str, *args) -> Any:
        async def run():
            async with self.connection() as conn:
                return await getattr(conn, method)(query, *args)
        return await self._with_retry(run)

    async def execute(self, query: str, *args) -> str:
        """Run a statement; returns the status tag, e.g. "DELETE 3"."""
        return await self._call("execute", query, *args)

    async def fetch(self, query: str, *args) -> list[asyncpg.Record]:
        return await self._call("fetch", query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        return await self._call("fetchrow", query, *args)

    async def fetchval(self, query: str, *args) -> Any:
        return await self._call("fetchval", query, *args)

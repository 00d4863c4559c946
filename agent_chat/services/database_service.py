from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
import logging
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)


class DatabaseService:
    """Pooled asyncpg wrapper used by the Postgres conversation store.

    Single statements run on a connection borrowed for that statement.
    ``transaction`` pins one connection for a group of statements that must
    commit or roll back together.
    """

    def __init__(self, dsn: str, *, min_size: int = 1, max_size: int = 5) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        if self._pool is None:
            logger.info("creating database connection pool", extra={"max_size": self._max_size})
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
            )

    async def disconnect(self) -> None:
        if self._pool is not None:
            logger.info("closing database connection pool")
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def _connection(self, operation: str, args_count: int = 0) -> AsyncIterator[asyncpg.Connection]:
        if self._pool is None:
            raise RuntimeError("database service is not connected")
        logger.debug("acquiring connection", extra={"operation": operation, "args_count": args_count})
        async with self._pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(
        self,
        *,
        isolation: str | None = None,
        readonly: bool = False,
    ) -> AsyncIterator[asyncpg.Connection]:
        """Run the enclosed statements on one connection inside a transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises.
        """

        async with self._connection("transaction") as connection:
            async with connection.transaction(isolation=isolation, readonly=readonly):
                yield connection

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self._connection("fetchrow", len(args)) as connection:
            return await connection.fetchrow(query, *args)

    async def fetch(self, query: str, *args: Any) -> Sequence[asyncpg.Record]:
        async with self._connection("fetch", len(args)) as connection:
            return await connection.fetch(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        async with self._connection("execute", len(args)) as connection:
            return await connection.execute(query, *args)

"""Async PostgreSQL connection pools, one per (source, database).

Pools are created lazily on first use and cached. Creation happens under a
lock so concurrent first use of a key creates exactly one pool. Once close()
has started, no new pool can be created.
"""
import logging
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from sqlgate.sources import Source
from sqlgate.utils.errors import ExecutionError, PoolClosedError

logger = logging.getLogger(__name__)

PoolKey = tuple[str, str]
PoolFactory = Callable[[Source, Optional[str]], Awaitable[Any]]


@dataclass
class QueryOutcome:
    rows: list[dict[str, Any]] = field(default_factory=list)
    fields: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    truncated: bool = False


def build_conninfo(
    source: Source, database: Optional[str], connect_timeout: int = 30
) -> str:
    """Build a psycopg conninfo string for ``source`` pointed at ``database``."""
    conn = source.connection
    params: dict[str, Any] = {
        "host": conn.host,
        "port": conn.port,
        "user": conn.user,
        "connect_timeout": connect_timeout,
        "application_name": f"sqlgate:{source.name}",
    }
    if conn.password:
        params["password"] = conn.password
    if database:
        params["dbname"] = database
    return make_conninfo(**params)


def make_pool_factory(
    min_size: int = 1, connect_timeout: int = 30
) -> PoolFactory:
    """Return a factory that opens an AsyncConnectionPool for a source."""

    async def open_pool(source: Source, database: Optional[str]) -> AsyncConnectionPool:
        conn = source.connection
        max_size = conn.connection_limit
        pool = AsyncConnectionPool(
            conninfo=build_conninfo(source, database, connect_timeout),
            min_size=min(min_size, max_size),
            max_size=max_size,
            max_waiting=conn.queue_limit,
            # Fail immediately on a saturated pool unless waiting is allowed
            timeout=float(connect_timeout) if conn.wait_for_connections else 0.0,
            open=False,
            kwargs={"row_factory": dict_row, "autocommit": True},
            check=AsyncConnectionPool.check_connection,
            name=f"{source.name}::{database or ''}",
        )
        await pool.open()
        return pool

    return open_pool


class PoolCache:
    """Atomic get-or-create cache of connection pools."""

    def __init__(self, factory: Optional[PoolFactory] = None):
        self._factory = factory or make_pool_factory()
        self._pools: dict[PoolKey, Any] = {}
        self._lock = asyncio.Lock()
        self._closing = False

    @staticmethod
    def key_for(source: Source, database: Optional[str] = None) -> PoolKey:
        return (source.name, database or source.connection.database or "")

    @property
    def closing(self) -> bool:
        return self._closing

    def __len__(self) -> int:
        return len(self._pools)

    async def get(self, source: Source, database: Optional[str] = None):
        """Return the pool for ``source`` on ``database`` (default: source database)."""
        key = self.key_for(source, database)
        existing = self._pools.get(key)
        if existing is not None:
            return existing
        async with self._lock:
            if self._closing:
                raise PoolClosedError("Connection pools are shutting down")
            existing = self._pools.get(key)
            if existing is not None:
                return existing
            pool = await self._factory(source, key[1] or None)
            self._pools[key] = pool
            logger.info(f"Connection pool created for {key[0]}::{key[1]}")
            return pool

    async def close(self):
        """Close every cached pool. No pool can be created afterwards."""
        async with self._lock:
            self._closing = True
            pools = list(self._pools.items())
            self._pools.clear()
        for (name, database), pool in pools:
            try:
                await pool.close()
                logger.info(f"Connection pool closed for {name}::{database}")
            except Exception as e:
                logger.warning(f"Error closing pool {name}::{database}: {e}")


async def execute_sql(
    pool, sql: str, params: Optional[tuple] = None, max_rows: Optional[int] = None
) -> QueryOutcome:
    """Run ``sql`` on a pooled connection and return rows plus field metadata.

    Driver errors are raised as ExecutionError carrying the SQLSTATE code.
    """
    try:
        async with pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params)
                if not cur.description:
                    return QueryOutcome(
                        rows=[], fields=[], row_count=max(cur.rowcount, 0)
                    )
                fields = [
                    {"name": col.name, "type": col.type_code}
                    for col in cur.description
                ]
                if max_rows:
                    rows = await cur.fetchmany(max_rows + 1)
                    truncated = len(rows) > max_rows
                    rows = rows[:max_rows]
                else:
                    rows = await cur.fetchall()
                    truncated = False
                return QueryOutcome(
                    rows=[dict(r) for r in rows],
                    fields=fields,
                    row_count=len(rows),
                    truncated=truncated,
                )
    except psycopg.Error as e:
        logger.warning(f"Query failed (sqlstate={e.sqlstate}): {str(e).strip()}")
        raise ExecutionError(str(e).strip(), code=e.sqlstate) from e

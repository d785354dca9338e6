"""Meeting store connection module.

One asyncpg pool shared by the session, transcript and summary
repositories. When the pool cannot be created the server keeps running:
repositories see is_initialized == False and skip persistence.

Examples:
    >>> db = get_db_manager()
    >>> await db.initialize()
    >>> async with db.transaction() as conn:
    ...     await conn.execute(CREATE_RECORDING_SESSIONS_TABLE)
    >>> await db.close()
"""

import logging
from typing import Optional
from contextlib import asynccontextmanager

import asyncpg

from .config import database_config, DatabaseConfig

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Process-wide owner of the meeting store pool.

    Attributes:
        config (DatabaseConfig): URL and pool settings
        pool (Optional[asyncpg.Pool]): open pool, None until initialize()
    """

    _instance: Optional["DatabaseManager"] = None

    def __new__(cls, config: Optional[DatabaseConfig] = None):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.config = config or database_config
            instance.pool = None
            cls._instance = instance
        return cls._instance

    @property
    def is_initialized(self) -> bool:
        return self.pool is not None

    async def initialize(self) -> bool:
        """Opens the pool. Returns False (and logs) when PostgreSQL is unreachable."""
        if self.pool is not None:
            return True

        try:
            self.pool = await asyncpg.create_pool(
                self.config.URL,
                min_size=self.config.POOL_MIN_SIZE,
                max_size=self.config.POOL_MAX_SIZE,
                command_timeout=self.config.COMMAND_TIMEOUT,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"[DB] could not connect to {self.config.redacted_url}: {type(e).__name__}: {e}")
            return False

        logger.info(f"[DB] pool open on {self.config.redacted_url}")
        return True

    async def close(self) -> None:
        if self.pool is None:
            return
        pool, self.pool = self.pool, None
        await pool.close()
        logger.info("[DB] pool closed")

    @asynccontextmanager
    async def acquire(self):
        """Borrows a pooled connection.

        Raises:
            RuntimeError: if initialize() has not succeeded
        """
        if self.pool is None:
            raise RuntimeError("Meeting store not initialized")
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self):
        """Borrows a connection inside a transaction (schema setup, multi-statement writes)."""
        async with self.acquire() as conn:
            async with conn.transaction():
                yield conn

    # Single-statement helpers used by the repositories

    async def execute(self, query: str, *args) -> str:
        """Runs a statement and returns its status tag ("UPDATE 1")."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> list:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args):
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)


def get_db_manager() -> DatabaseManager:
    return DatabaseManager()

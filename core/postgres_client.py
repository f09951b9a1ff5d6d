"""
PostgreSQL Client Wrapper

Centralized PostgreSQL access on top of an asyncpg connection pool.
Provides environment-driven configuration and the consistent
query/query_row/execute access pattern used by the repositories.

Usage:
    from core.postgres_client import PostgresClientWrapper

    db = PostgresClientWrapper("campaign_service", config=settings.infra)

    # Execute queries
    async with db:
        result = await db.query("SELECT * FROM campaign.campaigns WHERE organization_id = $1", [org_id])
"""

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

import asyncpg

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class PostgresClientWrapper:
    """
    PostgreSQL client wrapper around an asyncpg pool.

    The pool is created lazily on first use, so constructing a wrapper
    never touches the network. Rows come back as plain dicts.
    """

    def __init__(
        self,
        service_name: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        config: Optional[InfraConfig] = None,
    ):
        """
        Initialize PostgreSQL client wrapper.

        Args:
            service_name: Name of the service using this client
            host: PostgreSQL host (defaults to environment)
            port: PostgreSQL port (defaults to 5432)
            database: Database name (defaults to 'postgres')
            username: Database username
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size
            config: Infrastructure config, loaded from environment if omitted
        """
        config = config or InfraConfig.from_env()

        self.service_name = service_name
        self.host = host or config.postgres_host
        self.port = port or config.postgres_port
        self.database = database or config.postgres_db
        self.username = username or config.postgres_user
        self.password = password or config.postgres_password
        self.min_size = min_size or config.postgres_min_pool_size
        self.max_size = max_size or config.postgres_max_pool_size

        self._pool: Optional[asyncpg.Pool] = None
        # Connection held by the enclosing transaction() in this task, if any
        self._connection: ContextVar[Optional[asyncpg.Connection]] = ContextVar(
            f"{service_name}_pg_connection", default=None
        )

        logger.info(f"PostgreSQL client initialized for {service_name}: {self.host}:{self.port}/{self.database}")

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.username,
                password=self.password,
                min_size=self.min_size,
                max_size=self.max_size,
                server_settings={"application_name": self.service_name},
            )
            logger.info(f"PostgreSQL pool created for {self.service_name}")
        return self._pool

    async def __aenter__(self):
        """Async context manager entry"""
        await self._ensure_pool()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        # Pool stays open across operations; close() releases it
        return None

    async def _executor(self):
        connection = self._connection.get()
        if connection is not None:
            return connection
        return await self._ensure_pool()

    @asynccontextmanager
    async def transaction(self):
        """
        Run the enclosed queries on one connection inside a transaction.

        Commits on exit and rolls back when the block raises. Nested use
        becomes a savepoint on the same connection.
        """
        connection = self._connection.get()
        if connection is not None:
            async with connection.transaction():
                yield self
            return

        pool = await self._ensure_pool()
        async with pool.acquire() as connection:
            async with connection.transaction():
                token = self._connection.set(connection)
                try:
                    yield self
                finally:
                    self._connection.reset(token)

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        executor = await self._executor()
        records = await executor.fetch(sql, *(params or []))
        return [dict(record) for record in records]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        executor = await self._executor()
        record = await executor.fetchrow(sql, *(params or []))
        return dict(record) if record is not None else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute SQL statement, returning the number of affected rows"""
        executor = await self._executor()
        status = await executor.execute(sql, *(params or []))
        # asyncpg returns the command tag, e.g. "DELETE 3" or "INSERT 0 1"
        try:
            return int(status.split()[-1])
        except (ValueError, IndexError):
            return 0

    async def close(self):
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")


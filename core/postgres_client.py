"""
PostgreSQL Client Wrapper for the Campaign Planner

Centralized PostgreSQL client built on an asyncpg connection pool.
Provides config-driven initialization, dict-shaped results and a
LISTEN/NOTIFY helper used by change feeds.

Usage:
    from core.postgres_client import PostgresClient

    db = PostgresClient("timeline_service")
    await db.connect()
    rows = await db.query("SELECT * FROM planner.tasks WHERE campaign_id = $1", [campaign_id])
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import asyncpg

from core.config import InfraConfig

logger = logging.getLogger(__name__)


NotificationCallback = Callable[[str, str], None]


class PostgresClient:
    """
    PostgreSQL client with a lazily created asyncpg pool.

    - query / query_row return plain dicts
    - execute returns the command status string
    - listen keeps a dedicated connection per channel
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
        infra: Optional[InfraConfig] = None,
    ):
        """
        Initialize PostgreSQL client.

        Args:
            service_name: Name of the service using this client
            host: PostgreSQL host (defaults to InfraConfig / env)
            port: PostgreSQL port (defaults to 5432)
            database: Database name
            username: Database username
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size
            infra: Infrastructure config to read defaults from
        """
        infra = infra or InfraConfig.from_env()

        self.service_name = service_name
        self.host = host or infra.postgres_host
        self.port = port or infra.postgres_port
        self.database = database or infra.postgres_db
        self.username = username or infra.postgres_user
        self.password = password if password is not None else infra.postgres_password
        self.min_size = min_size or infra.postgres_pool_min
        self.max_size = max_size or infra.postgres_pool_max

        self._pool: Optional[asyncpg.Pool] = None
        self._listeners: Dict[str, asyncpg.Connection] = {}

        logger.info(f"PostgreSQL client initialized for {service_name}: {self.host}:{self.port}/{self.database}")

    async def connect(self) -> None:
        """Create the connection pool if it does not exist yet"""
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            database=self.database,
            min_size=self.min_size,
            max_size=self.max_size,
        )
        logger.info(f"PostgreSQL pool ready for {self.service_name}")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL pool not initialized. Call connect() first.")
        return self._pool

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            row = await self.query_row("SELECT 1 AS healthy")
            return bool(row and row.get("healthy") == 1)
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        async with self.pool.acquire() as conn:
            records = await conn.fetch(sql, *(params or []))
        return [dict(record) for record in records]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        async with self.pool.acquire() as conn:
            record = await conn.fetchrow(sql, *(params or []))
        return dict(record) if record is not None else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> str:
        """Execute SQL statement"""
        async with self.pool.acquire() as conn:
            return await conn.execute(sql, *(params or []))

    async def listen(
        self, channel: str, callback: NotificationCallback
    ) -> Callable[[], Awaitable[None]]:
        """
        LISTEN on a channel with a dedicated connection.

        The callback receives (channel, payload). Returns a coroutine function
        that stops listening and releases the connection.
        """
        conn = await asyncpg.connect(
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            database=self.database,
        )

        def _on_notify(connection, pid, notified_channel, payload):
            callback(notified_channel, payload)

        await conn.add_listener(channel, _on_notify)
        key = f"{channel}:{id(callback)}"
        self._listeners[key] = conn
        logger.info(f"Listening on PostgreSQL channel '{channel}'")

        async def _unlisten() -> None:
            listener = self._listeners.pop(key, None)
            if listener is None:
                return
            try:
                await listener.remove_listener(channel, _on_notify)
            finally:
                await listener.close()
            logger.info(f"Stopped listening on PostgreSQL channel '{channel}'")

        return _unlisten

    async def close(self) -> None:
        """Close listeners and the pool"""
        listeners = list(self._listeners.values())
        self._listeners.clear()
        if listeners:
            await asyncio.gather(*(conn.close() for conn in listeners), return_exceptions=True)

        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")

"""
PostgreSQL Client (SQLAlchemy asyncio + asyncpg)

Architecture:
    DatabaseClient (Public API)
        ├── build_database_url (settings -> SQLAlchemy URL)
        └── AsyncEngine (pooled connections, pre-ping, recycle)

The caching core needs three things from the relational store: a scalar
query, a row query and a liveness check. Schema and business queries are
owned by the callers (warmer passes, alert sampler).

Author: System Architect
Date: 2025-12-13
"""

import time
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ethosview.core.config.constants import HealthStatus
from ethosview.core.config.settings import get_settings
from ethosview.core.exceptions import DatabaseConnectionError, DatabaseQueryError
from ethosview.core.logging.logger import get_logger

logger = get_logger(__name__)

ASYNC_DRIVER = "postgresql+asyncpg"


def build_database_url(db_settings) -> tuple[URL, str]:
    """
    Resolve the SQLAlchemy URL and SSL mode from database settings.

    DATABASE_URL wins when set; ``postgres://`` and ``postgresql://`` schemes are
    rewritten to the asyncpg driver and a ``sslmode`` query parameter is lifted
    out (asyncpg takes it as the ``ssl`` connect argument instead).

    Returns:
        (url, ssl_mode)
    """
    ssl_mode = db_settings.DB_SSL_MODE

    if db_settings.DATABASE_URL:
        url = make_url(db_settings.DATABASE_URL)
        if url.drivername in ("postgres", "postgresql"):
            url = url.set(drivername=ASYNC_DRIVER)
        if "sslmode" in url.query:
            ssl_mode = url.query["sslmode"]
            url = url.difference_update_query(["sslmode"])
        return url, ssl_mode

    url = URL.create(
        ASYNC_DRIVER,
        username=db_settings.DB_USER,
        password=db_settings.DB_PASSWORD,
        host=db_settings.DB_HOST,
        port=db_settings.DB_PORT,
        database=db_settings.DB_NAME,
    )
    return url, ssl_mode


class DatabaseClient:
    """
    Pooled async PostgreSQL client.

    Usage:
        client = DatabaseClient()
        await client.connect()

        count = await client.fetch_scalar("SELECT COUNT(*) FROM companies")
        rows = await client.fetch_all(
            "SELECT id, name FROM companies WHERE sector = :sector", {"sector": "Energy"}
        )

        await client.disconnect()
    """

    def __init__(self, settings=None):
        self._settings = settings or get_settings()
        self._engine: AsyncEngine | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseQueryError(message="Database client is not connected")
        return self._engine

    def is_connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> None:
        """
        Create the engine and verify connectivity.

        STAGE-DB.1: Connection establishment

        Raises:
            DatabaseConnectionError: If the first round-trip fails
        """
        if self._engine is not None:
            return

        cfg = self._settings.database
        url, ssl_mode = build_database_url(cfg)

        engine = create_async_engine(
            url,
            pool_size=cfg.DB_POOL_SIZE,
            max_overflow=cfg.DB_MAX_OVERFLOW,
            pool_recycle=cfg.DB_POOL_RECYCLE,
            pool_pre_ping=True,
            connect_args={"ssl": ssl_mode, "command_timeout": cfg.DB_COMMAND_TIMEOUT},
        )

        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error(
                "Failed to connect to database",
                stage="DB.1",
                url=url.render_as_string(hide_password=True),
                error=str(e),
            )
            raise DatabaseConnectionError.from_exception(
                e,
                message=f"Failed to connect to database: {e}",
                host=url.host,
                database=url.database,
            ).with_suggestion(
                "Check DATABASE_URL (or DB_HOST, DB_PORT, DB_NAME) and DB_SSL_MODE"
            ) from e

        self._engine = engine
        logger.info(
            "Database connected successfully",
            stage="DB.1",
            host=url.host,
            database=url.database,
            pool_size=cfg.DB_POOL_SIZE,
        )

    async def disconnect(self) -> None:
        """
        Dispose of the engine and its pool.

        STAGE-DB.2: Connection cleanup
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Database disconnected", stage="DB.2")

    async def ping(self) -> bool:
        """
        Liveness check.

        Returns:
            True if a ``SELECT 1`` round-trip succeeds, False otherwise
        """
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Database ping failed", stage="DB.PING", error=str(e))
            return False

    async def fetch_scalar(self, query: str, params: dict[str, Any] | None = None) -> Any:
        """
        Execute a query and return the first column of the first row.

        Returns:
            The scalar value, or None when the query returns no rows

        Raises:
            DatabaseQueryError: On any driver or SQL error
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(query), params or {})
                return result.scalar()
        except SQLAlchemyError as e:
            logger.error("Database scalar query failed", stage="DB.SCALAR", error=str(e))
            raise DatabaseQueryError(
                message=f"Database query failed: {e}", details={"query": query}
            ) from e

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        Execute a query and return every row as a column-name keyed dict.

        Raises:
            DatabaseQueryError: On any driver or SQL error
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(query), params or {})
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error("Database row query failed", stage="DB.ROWS", error=str(e))
            raise DatabaseQueryError(
                message=f"Database query failed: {e}", details={"query": query}
            ) from e

    async def health_check(self) -> dict[str, Any]:
        """
        Health snapshot with ping latency and pool usage.
        """
        health: dict[str, Any] = {
            "status": HealthStatus.HEALTHY.value,
            "connected": self.is_connected(),
            "ping_latency_ms": None,
        }

        if self._engine is None:
            health["status"] = HealthStatus.UNHEALTHY.value
            health["error"] = "Engine not initialized"
            return health

        start = time.perf_counter()
        healthy = await self.ping()
        health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        if not healthy:
            health["status"] = HealthStatus.UNHEALTHY.value

        pool = self._engine.pool
        health["pool_size"] = pool.size()
        health["checked_out"] = pool.checkedout()
        health["overflow"] = pool.overflow()
        return health


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_database_client: DatabaseClient | None = None


def get_database_client() -> DatabaseClient:
    """Get the global database client instance (singleton)."""
    global _database_client

    if _database_client is None:
        _database_client = DatabaseClient()

    return _database_client


async def init_database() -> DatabaseClient:
    """Initialize and connect the global database client."""
    client = get_database_client()
    await client.connect()
    return client


async def close_database() -> None:
    """Close the global database client."""
    global _database_client

    if _database_client:
        await _database_client.disconnect()
        _database_client = None

from abc import ABC, abstractmethod
from typing import Optional, List
import logging

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine

from .config import Settings, get_settings
from .errors import ErrorClassifier, validation_error
from schema_sync.models.base import DatabaseConfig

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Async database connection manager with connection pooling"""

    def __init__(self, config: DatabaseConfig, settings: Optional[Settings] = None):
        self.config = config
        self.settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None

    @property
    def url(self) -> URL:
        return build_connection_url(self.config)

    @property
    def database(self) -> Optional[str]:
        return self.config.database

    def get_engine(self) -> AsyncEngine:
        """Get or create async engine with connection pooling"""
        if self._engine is None:
            self._engine = create_async_engine(
                self.url,
                pool_size=self.settings.DATABASE_POOL_SIZE,
                max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
                pool_timeout=self.settings.DATABASE_POOL_TIMEOUT,
                pool_recycle=self.settings.DATABASE_POOL_RECYCLE,
                pool_pre_ping=True,
                connect_args={"connect_timeout": self.settings.DATABASE_CONNECT_TIMEOUT},
                echo=False
            )
        return self._engine

    async def close(self):
        """Close database connection"""
        if self._engine:
            await self._engine.dispose()
            self._engine = None

    def __repr__(self) -> str:
        return f"DatabaseConnection({self.config.host}:{self.config.port}/{self.config.database or ''})"


def build_connection_url(config: DatabaseConfig) -> URL:
    """Generate SQLAlchemy async connection URL"""
    return URL.create(
        "mysql+aiomysql",
        username=config.user,
        password=config.password,
        host=config.host,
        port=config.port,
        database=config.database or None,
    )


class DatabaseService(ABC):
    """Database access capability used by the synchronization pipeline"""

    @abstractmethod
    async def connect(self, config: DatabaseConfig) -> DatabaseConnection:
        """Open a connection handle for the given configuration"""

    @abstractmethod
    async def test_connection(self, conn: DatabaseConnection) -> None:
        """Verify the connection is usable, raising on failure"""

    @abstractmethod
    async def close(self, conn: DatabaseConnection) -> None:
        """Release the connection handle"""

    @abstractmethod
    async def execute_sql(self, conn: DatabaseConnection, statements: List[str]) -> None:
        """
        Execute statements in order inside one transaction scope.

        On failure the raised error carries the 1-based `statement_index`
        of the statement that failed (1 when nothing was executed yet).
        """


class MySQLDatabaseService(DatabaseService):
    """DatabaseService backed by SQLAlchemy async engines on aiomysql"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def connect(self, config: DatabaseConfig) -> DatabaseConnection:
        if not config.host:
            raise validation_error("database host is required")
        if not config.user:
            raise validation_error("database user is required")

        conn = DatabaseConnection(config, self.settings)
        try:
            await self.test_connection(conn)
        except Exception:
            await conn.close()
            raise
        logger.info(f"Connected to {conn}")
        return conn

    async def test_connection(self, conn: DatabaseConnection) -> None:
        engine = conn.get_engine()
        try:
            async with engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
        except Exception as e:
            error = ErrorClassifier.classify(e)
            error.with_context("host", conn.config.host).with_context("port", conn.config.port)
            raise error

    async def close(self, conn: DatabaseConnection) -> None:
        await conn.close()
        logger.debug(f"Closed {conn}")

    async def execute_sql(self, conn: DatabaseConnection, statements: List[str]) -> None:
        if not statements:
            return

        engine = conn.get_engine()
        index = 0
        try:
            # begin() commits on success and rolls back on any exception
            async with engine.begin() as connection:
                for index, statement in enumerate(statements, start=1):
                    logger.debug(f"Executing statement {index}/{len(statements)}: {statement}")
                    await connection.exec_driver_sql(statement)
        except Exception as e:
            error = ErrorClassifier.classify(e)
            # Failing before the first statement ran counts as statement 1
            index = max(index, 1)
            error.with_context("statement_index", index)
            error.with_context("statement", statements[index - 1])
            raise error

from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from imam_roster.core.config import settings
from imam_roster.core.logger import logger

# Registers the tables on SQLModel.metadata
from imam_roster.models import db_models  # noqa: F401


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DBService:
    _instance = None
    _engine: Optional[AsyncEngine] = None
    _sessionmaker: Optional[async_sessionmaker] = None
    _url: Optional[str] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(DBService, cls).__new__(cls)
        return cls._instance

    def configure(self, url: str):
        """
        Point the service at another database. The engine is built lazily on first use.
        Used by tests and by scripts that work on a copy of the roster.
        """
        self._url = url
        self._engine = None
        self._sessionmaker = None

    @property
    def url(self) -> str:
        return self._url or settings.DATABASE_URL

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            is_sqlite = self.url.startswith("sqlite")
            kwargs = {"echo": False}
            if is_sqlite:
                # aiosqlite connections are bound to the loop that opened them
                kwargs["poolclass"] = NullPool
            self._engine = create_async_engine(self.url, **kwargs)
            if is_sqlite:
                event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            logger.info(f"🗄️ Database engine ready ({self._engine.url.render_as_string(hide_password=True)})")
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker:
        if self._sessionmaker is None:
            self._sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        return self._sessionmaker

    async def init_db(self):
        async with self.engine.begin() as conn:
            # Creates the tables if they don't exist
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("✅ Database schema initialized")

    async def dispose(self):
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None


db_service = DBService()


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one short-lived session per request."""
    async with db_service.sessionmaker() as session:
        yield session

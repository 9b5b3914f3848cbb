import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from skillproof.config import Config
from skillproof.database.models import Base
from skillproof.utils.logger import setup_logger

# Key in Session.info holding callbacks to run once the session commits
AFTER_COMMIT_KEY = "skillproof_after_commit"


async def run_callbacks(callbacks):
    for callback in callbacks:
        await callback()


class Database:
    """
    Handle to the scoring-core store.

    Owns the async engine, the session factory and the single writer lock
    that every mutating service entry point runs under.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = Config.get_async_database_url(database_url)
        self.engine = None
        self.async_session = None
        self.write_lock = asyncio.Lock()

    @property
    def session_factory(self):
        return self.async_session

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        engine_kwargs = {"echo": Config.DEBUG}
        if ":memory:" in self.database_url:
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )

        self.engine = create_async_engine(self.database_url, **engine_kwargs)

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session for reads"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All operations within the context are committed together on success,
        or rolled back together on failure.

        Usage:
            async with db.transaction() as session:
                await credentials.mint_credential(..., session=session)
                await reputation.apply_outcome(..., session=session)

        The write lock is held for the whole transaction, so the caller must
        pass the yielded session to every participating operation. Exceptions
        must be allowed to propagate out of the context for rollback to occur.
        """
        async with self.write_lock:
            async with self.async_session() as session:
                try:
                    yield session
                    await session.commit()
                    callbacks = session.info.pop(AFTER_COMMIT_KEY, [])
                except Exception:
                    session.info.pop(AFTER_COMMIT_KEY, None)
                    await session.rollback()
                    raise
                finally:
                    await session.close()
        # Notifications queued by services are emitted only after commit
        await run_callbacks(callbacks)

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

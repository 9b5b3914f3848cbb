"""
Base service class for the scoring core.

Provides async database session management, the shared single-writer lock,
an injectable clock, owner checks and post-commit notifications for all
service layer operations.
"""

import inspect
import json
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.config import Config
from skillproof.database.database import AFTER_COMMIT_KEY
from skillproof.database.models import AuditLog
from skillproof.utils.addresses import normalize_address
from skillproof.utils.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


def system_clock() -> int:
    return int(time.time())


class BaseService:
    """Base class for all services with async database session management."""

    def __init__(self, database, clock: Optional[Callable[[], int]] = None,
                 owner: Optional[str] = None):
        """
        Initialize base service.

        Args:
            database: Database handle providing the session factory and write lock
            clock: Callable returning the current time in integer seconds
            owner: Address allowed to perform administrative operations
        """
        self.database = database
        self.clock = clock or system_clock
        owner = owner if owner is not None else Config.OWNER_ADDRESS
        self.owner = normalize_address(owner) if owner else None
        self._listeners = defaultdict(list)

    @property
    def session_factory(self):
        return self.database.session_factory

    def _now(self) -> int:
        return int(self.clock())

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for async database operations."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def _read_context(self, session: Optional[AsyncSession] = None):
        """Use the provided session, otherwise open a new one."""
        if session is not None:
            yield session
        else:
            async with self.get_session() as new_session:
                yield new_session

    @asynccontextmanager
    async def _write_context(self, session: Optional[AsyncSession] = None):
        """
        Provides a write scope. A provided session belongs to the caller, who
        owns both the commit and the write lock. Otherwise a new transaction
        is opened under the write lock.
        """
        if session is not None:
            yield session
        else:
            async with self.database.transaction() as new_session:
                yield new_session

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def is_owner(self, address: str) -> bool:
        return self.owner is not None and address == self.owner

    def _require_owner(self, caller: str, operation: str):
        if not self.is_owner(caller):
            logger.warning(f"Rejected {operation} from non-owner {caller}")
            raise UnauthorizedError(caller, operation)

    async def _audit(self, session: AsyncSession, actor: str, action: str,
                     target: Optional[str] = None, details: Optional[dict] = None):
        session.add(AuditLog(
            actor=actor,
            action=action,
            target=target,
            details=json.dumps(details, sort_keys=True) if details is not None else None,
            timestamp=self._now(),
        ))

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def add_listener(self, name: str, callback: Callable):
        """Register a sync or async callback for a notification name."""
        self._listeners[name].append(callback)

    def remove_listener(self, name: str, callback: Callable):
        if callback in self._listeners.get(name, []):
            self._listeners[name].remove(callback)

    def _notify(self, session: AsyncSession, name: str, payload: dict):
        """Queue a notification to be emitted once the session commits."""
        async def emit():
            await self._emit(name, payload)
        session.info.setdefault(AFTER_COMMIT_KEY, []).append(emit)

    async def _emit(self, name: str, payload: dict):
        for callback in list(self._listeners.get(name, [])):
            try:
                result = callback(name, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # State is already committed; one listener must not stop the rest
                logger.error(f"Listener {callback!r} failed for {name}", exc_info=True)

"""
Participant registration shared by every mutating entry point.

The participant set is append-only and ordered by first touch. Services
call ensure_participant inside their own transaction so the registration
commits or rolls back together with the operation that caused it.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.database.models import Participant
from skillproof.utils.logger import setup_logger

logger = setup_logger(__name__)


async def ensure_participant(session: AsyncSession, address: str, now: int) -> bool:
    """
    Append an address to the participant set if it is not already present.

    Returns:
        True if the address was added, False if it was already a participant
    """
    existing = await session.scalar(
        select(Participant.id).where(Participant.address == address)
    )
    if existing is not None:
        return False

    session.add(Participant(address=address, first_seen_at=now))
    # Flush so a second touch in the same transaction sees the row
    await session.flush()
    logger.debug(f"Registered participant {address}")
    return True

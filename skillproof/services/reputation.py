"""
Reputation ledger service.

Keeps a signed, unbounded reputation per address, driven by outcome events
from the prediction market and bounty resolution layer, and derives the
effective score and voting power from it. The ledger does not know why an
outcome happened; resolution logic is its only writer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.constants import NotificationNames, PaginationConstants, ReputationConstants
from skillproof.data_models.scores import ReputationEntry
from skillproof.database.models import Participant, ReputationAccount, ReputationLedger
from skillproof.services.base import BaseService
from skillproof.services.participants import ensure_participant
from skillproof.utils.addresses import normalize_address
from skillproof.utils.exceptions import InvalidOutcomeError
from skillproof.utils.logger import setup_logger

logger = setup_logger(__name__)


class OutcomeKind(Enum):
    CORRECT_PREDICTION = "CORRECT_PREDICTION"
    INCORRECT_PREDICTION = "INCORRECT_PREDICTION"
    BOUNTY_WON = "BOUNTY_WON"

    @property
    def delta(self) -> int:
        return _OUTCOME_DELTAS[self]

    @classmethod
    def coerce(cls, value) -> "OutcomeKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise InvalidOutcomeError(value) from None


_OUTCOME_DELTAS = {
    OutcomeKind.CORRECT_PREDICTION: ReputationConstants.CORRECT_PREDICTION_DELTA,
    OutcomeKind.INCORRECT_PREDICTION: ReputationConstants.INCORRECT_PREDICTION_DELTA,
    OutcomeKind.BOUNTY_WON: ReputationConstants.BOUNTY_WON_DELTA,
}


@dataclass(frozen=True)
class Outcome:
    """Outcome event attributed to an address that revealed."""
    address: str
    kind: OutcomeKind


class ReputationService(BaseService):
    """Reputation ledger and derived effective values."""

    def __init__(self, database, credentials, clock=None, owner=None):
        super().__init__(database, clock=clock, owner=owner)
        self.credentials = credentials

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    async def apply_outcome(self, address: str, kind, reference: Optional[str] = None,
                            session: Optional[AsyncSession] = None) -> int:
        """
        Apply one outcome event to an address's reputation.

        Args:
            address: Address the outcome is attributed to
            kind: OutcomeKind or its name
            reference: Optional market or bounty identifier for the history

        Returns:
            Reputation after the change
        """
        results = await self.apply_outcomes(
            [Outcome(address=address, kind=kind)], reference=reference, session=session
        )
        return results[0]

    async def apply_outcomes(self, outcomes: Iterable[Outcome], reference: Optional[str] = None,
                             session: Optional[AsyncSession] = None) -> List[int]:
        """
        Apply a batch of outcome events atomically, e.g. one market resolution.
        Every event is validated before any is written.

        Returns:
            Reputation after each change, in input order
        """
        validated = [
            (normalize_address(o.address), OutcomeKind.coerce(o.kind))
            for o in outcomes
        ]

        results = []
        async with self._write_context(session) as s:
            now = self._now()
            for address, kind in validated:
                await self._register(s, address, now)

                account = await s.scalar(
                    select(ReputationAccount)
                    .where(ReputationAccount.address == address)
                    .with_for_update()
                )
                if not account:
                    account = ReputationAccount(address=address, reputation=0, updated_at=now)
                    s.add(account)

                account.reputation += kind.delta
                account.updated_at = now
                s.add(ReputationLedger(
                    address=address,
                    kind=kind.value,
                    change_amount=kind.delta,
                    reputation_after=account.reputation,
                    reference=reference,
                    timestamp=now,
                ))
                await s.flush()
                results.append(account.reputation)

                self._notify(s, NotificationNames.REPUTATION_UPDATED, {
                    "address": address,
                    "kind": kind.value,
                    "change": kind.delta,
                    "reputation": account.reputation,
                    "reference": reference,
                })
                logger.info(f"Reputation of {address} {kind.delta:+d} ({kind.value}) -> {account.reputation}")

        return results

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    async def _register(self, session: AsyncSession, address: str, now: int) -> bool:
        added = await ensure_participant(session, address, now)
        if added:
            self._notify(session, NotificationNames.PARTICIPANT_REGISTERED, {"address": address})
        return added

    async def register_participant(self, address: str,
                                   session: Optional[AsyncSession] = None) -> bool:
        """Idempotently append an address to the participant set."""
        address = normalize_address(address)
        async with self._write_context(session) as s:
            return await self._register(s, address, self._now())

    async def is_participant(self, address: str, session: Optional[AsyncSession] = None) -> bool:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            found = await s.scalar(select(Participant.id).where(Participant.address == address))
            return found is not None

    async def participant_count(self, session: Optional[AsyncSession] = None) -> int:
        async with self._read_context(session) as s:
            return await s.scalar(select(func.count(Participant.id)))

    async def get_participant(self, index: int,
                              session: Optional[AsyncSession] = None) -> Optional[str]:
        """Participant at a 0-based insertion index, None if out of range."""
        if index < 0:
            return None
        async with self._read_context(session) as s:
            return await s.scalar(
                select(Participant.address).order_by(Participant.id).offset(index).limit(1)
            )

    async def get_leaderboard(self, start: int = 0,
                              count: int = PaginationConstants.DEFAULT_PAGE_SIZE,
                              session: Optional[AsyncSession] = None) -> List[str]:
        """
        Slice of the participant set in insertion order. Sorting by score
        is left to the caller.
        """
        if start < 0 or count <= 0:
            return []
        async with self._read_context(session) as s:
            result = await s.scalars(
                select(Participant.address).order_by(Participant.id).offset(start).limit(count)
            )
            return list(result.all())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_reputation(self, address: str, session: Optional[AsyncSession] = None) -> int:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            reputation = await s.scalar(
                select(ReputationAccount.reputation).where(ReputationAccount.address == address)
            )
            return reputation or 0

    async def get_reputation_history(self, address: str,
                                     session: Optional[AsyncSession] = None) -> List[ReputationEntry]:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            rows = await s.scalars(
                select(ReputationLedger)
                .where(ReputationLedger.address == address)
                .order_by(ReputationLedger.id)
            )
            return [
                ReputationEntry(
                    address=row.address,
                    kind=row.kind,
                    change_amount=row.change_amount,
                    reputation_after=row.reputation_after,
                    reference=row.reference,
                    timestamp=row.timestamp,
                )
                for row in rows.all()
            ]

    async def effective_score(self, address: str, session: Optional[AsyncSession] = None) -> int:
        """Base score plus reputation, floored at 0. 0 without a valid credential."""
        address = normalize_address(address)
        async with self._read_context(session) as s:
            credential = await self.credentials.get_valid_credential(address, session=s)
            if not credential:
                return 0
            reputation = await self.get_reputation(address, session=s)
        return max(0, credential.base_score + reputation)

    async def effective_voting_power(self, address: str, session: Optional[AsyncSession] = None) -> int:
        """Base percentile plus a non-negative reputation bonus. 0 without a valid credential."""
        address = normalize_address(address)
        async with self._read_context(session) as s:
            credential = await self.credentials.get_valid_credential(address, session=s)
            if not credential:
                return 0
            reputation = await self.get_reputation(address, session=s)
        return credential.base_percentile + max(0, reputation // ReputationConstants.VOTING_POWER_DIVISOR)

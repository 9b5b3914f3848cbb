"""
Cross-issuer aggregator service.

Maintains the address-linking graph (primary -> ordered set of owned
addresses, the primary first) and composes one aggregate score from the
valid credentials of every linked address.
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.constants import AggregatorConstants, NotificationNames
from skillproof.data_models.scores import AggregateScore
from skillproof.database.models import AddressLink
from skillproof.services.base import BaseService
from skillproof.services.participants import ensure_participant
from skillproof.utils.addresses import normalize_address
from skillproof.utils.exceptions import (
    AlreadyLinkedError, CannotUnlinkPrimaryError, NotLinkedError, UnauthorizedError
)
from skillproof.utils.logger import setup_logger

logger = setup_logger(__name__)


class AggregatorService(BaseService):
    """Address linking and composite scoring across issuers."""

    def __init__(self, database, credentials, clock=None, owner=None):
        super().__init__(database, clock=clock, owner=owner)
        self.credentials = credentials

    async def _find_link(self, session: AsyncSession, address: str) -> Optional[AddressLink]:
        return await session.scalar(select(AddressLink).where(AddressLink.linked_address == address))

    async def link_address(self, caller: str, primary: str, alt: str,
                           session: Optional[AsyncSession] = None):
        """
        Link an alternate address to a primary.

        The first link for a primary inserts the primary itself as the first
        member of its set. Linking a primary to itself on first use yields a
        one-member set.

        Raises:
            UnauthorizedError: caller is neither the owner nor alt
            AlreadyLinkedError: alt already belongs to a set, or primary
                belongs to another primary's set
        """
        caller = normalize_address(caller)
        primary = normalize_address(primary)
        alt = normalize_address(alt)

        if not self.is_owner(caller) and caller != alt:
            logger.warning(f"Rejected link of {alt} to {primary} by {caller}")
            raise UnauthorizedError(caller, "link_address")

        async with self._write_context(session) as s:
            existing = await self._find_link(s, alt)
            if existing:
                raise AlreadyLinkedError(alt, existing.primary_address)

            now = self._now()
            primary_link = await self._find_link(s, primary)
            if primary_link and primary_link.primary_address != primary:
                raise AlreadyLinkedError(primary, primary_link.primary_address)
            if not primary_link:
                s.add(AddressLink(primary_address=primary, linked_address=primary, linked_at=now))
            if alt != primary:
                s.add(AddressLink(primary_address=primary, linked_address=alt, linked_at=now))

            await ensure_participant(s, primary, now)
            await ensure_participant(s, alt, now)

            self._notify(s, NotificationNames.ADDRESS_LINKED, {"primary": primary, "address": alt})

        logger.info(f"Linked {alt} to primary {primary}")

    async def unlink_address(self, caller: str, primary: str, alt: str,
                             session: Optional[AsyncSession] = None):
        """
        Remove an alternate address from a primary's set. Owner only.

        Raises:
            UnauthorizedError: caller is not the owner
            CannotUnlinkPrimaryError: alt is the primary itself
            NotLinkedError: alt is not in the primary's set
        """
        caller = normalize_address(caller)
        primary = normalize_address(primary)
        alt = normalize_address(alt)
        self._require_owner(caller, "unlink_address")
        if alt == primary:
            raise CannotUnlinkPrimaryError(primary)

        async with self._write_context(session) as s:
            link = await self._find_link(s, alt)
            if not link or link.primary_address != primary:
                raise NotLinkedError(primary, alt)
            await s.delete(link)
            await self._audit(s, caller, "unlink_address", alt, {"primary": primary})
            self._notify(s, NotificationNames.ADDRESS_UNLINKED, {"primary": primary, "address": alt})

        logger.info(f"Unlinked {alt} from primary {primary}")

    async def get_linked_addresses(self, primary: str,
                                   session: Optional[AsyncSession] = None) -> List[str]:
        """Ordered members of a primary's set, the primary first. Empty if never linked."""
        primary = normalize_address(primary)
        async with self._read_context(session) as s:
            result = await s.scalars(
                select(AddressLink.linked_address)
                .where(AddressLink.primary_address == primary)
                .order_by(AddressLink.id)
            )
            return list(result.all())

    async def get_linked_count(self, primary: str,
                               session: Optional[AsyncSession] = None) -> int:
        primary = normalize_address(primary)
        async with self._read_context(session) as s:
            return await s.scalar(
                select(func.count(AddressLink.id)).where(AddressLink.primary_address == primary)
            )

    async def get_primary(self, address: str,
                          session: Optional[AsyncSession] = None) -> Optional[str]:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            link = await self._find_link(s, address)
            return link.primary_address if link else None

    async def get_aggregate_score(self, address: str,
                                  session: Optional[AsyncSession] = None) -> AggregateScore:
        """
        Composite score over the valid credentials of an address's linked set.

        An address without a set of more than one member is scored alone.
        Domain counts are summed per credential, so a domain held through
        two issuers counts twice.
        """
        address = normalize_address(address)
        async with self._read_context(session) as s:
            members = await self.get_linked_addresses(address, session=s)
            if len(members) <= 1:
                members = [address]

            credentials = []
            for member in members:
                credential = await self.credentials.get_valid_credential(member, session=s)
                if credential:
                    credentials.append(credential)

        n = len(credentials)
        if n == 0:
            return AggregateScore()

        composite_score = sum(c.base_score for c in credentials) // n
        bonus = (n - 1) * AggregatorConstants.CROSS_DOMAIN_BONUS_PER_ISSUER
        return AggregateScore(
            composite_score=composite_score,
            composite_percentile=sum(c.base_percentile for c in credentials) // n,
            total_matches=sum(c.total_matches for c in credentials),
            issuer_count=n,
            domain_count=sum(len(c.domains) for c in credentials),
            cross_domain_bonus=bonus,
            overall_score=composite_score + bonus,
        )

"""
Credential store consumed by the scoring core.

Plain keyed storage of issuers and skill credentials: the owner registers
issuers, active issuers mint credentials, and issuers (or the owner) revoke
them. Every other service reads credentials through this class and treats
revoked credentials as absent.
"""

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.constants import NotificationNames
from skillproof.data_models.scores import CredentialSnapshot, DomainScore
from skillproof.database.models import Credential, CredentialDomain, Issuer
from skillproof.services.base import BaseService
from skillproof.services.participants import ensure_participant
from skillproof.utils.addresses import normalize_address
from skillproof.utils.exceptions import (
    ArrayLengthMismatchError, CredentialExistsError, NoCredentialError,
    NotActiveIssuerError, UnauthorizedError
)
from skillproof.utils.logger import setup_logger

logger = setup_logger(__name__)


def to_snapshot(credential: Credential) -> CredentialSnapshot:
    return CredentialSnapshot(
        owner=credential.owner,
        issuer=credential.issuer,
        player_name=credential.player_name,
        base_score=credential.base_score,
        base_percentile=credential.base_percentile,
        domains=tuple(
            DomainScore(domain=d.domain, score=d.score, percentile=d.percentile)
            for d in credential.domains
        ),
        total_matches=credential.total_matches,
        win_rate_bps=credential.win_rate_bps,
        issued_at=credential.issued_at,
        valid=credential.valid,
    )


class CredentialService(BaseService):
    """Issuer registry and credential storage."""

    # ------------------------------------------------------------------
    # Issuers
    # ------------------------------------------------------------------

    async def register_issuer(self, caller: str, issuer: str, name: str,
                              session: Optional[AsyncSession] = None):
        """Register or reactivate an issuer. Owner only."""
        caller = normalize_address(caller)
        issuer = normalize_address(issuer)
        self._require_owner(caller, "register_issuer")

        async with self._write_context(session) as s:
            record = await s.scalar(select(Issuer).where(Issuer.address == issuer))
            if record:
                record.name = name
                record.active = True
            else:
                s.add(Issuer(address=issuer, name=name, active=True, registered_at=self._now()))
            await self._audit(s, caller, "register_issuer", issuer, {"name": name})

        logger.info(f"Issuer {issuer} ({name}) registered by {caller}")

    async def revoke_issuer(self, caller: str, issuer: str,
                            session: Optional[AsyncSession] = None):
        """Deactivate an issuer. Credentials it already minted stay valid. Owner only."""
        caller = normalize_address(caller)
        issuer = normalize_address(issuer)
        self._require_owner(caller, "revoke_issuer")

        async with self._write_context(session) as s:
            record = await s.scalar(select(Issuer).where(Issuer.address == issuer))
            if not record or not record.active:
                raise NotActiveIssuerError(issuer)
            record.active = False
            await self._audit(s, caller, "revoke_issuer", issuer)

        logger.info(f"Issuer {issuer} revoked by {caller}")

    async def is_active_issuer(self, address: str, session: Optional[AsyncSession] = None) -> bool:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            active = await s.scalar(select(Issuer.active).where(Issuer.address == address))
            return bool(active)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def mint_credential(
        self,
        caller: str,
        owner: str,
        base_score: int,
        base_percentile: int,
        domains: Sequence[str] = (),
        domain_scores: Sequence[int] = (),
        domain_percentiles: Sequence[int] = (),
        total_matches: int = 0,
        win_rate_bps: int = 0,
        player_name: str = "",
        session: Optional[AsyncSession] = None
    ) -> CredentialSnapshot:
        """
        Mint a credential for an owner.

        Args:
            caller: Active issuer minting the credential
            owner: Address receiving the credential
            base_score: Overall skill score
            base_percentile: Overall percentile, 0-100
            domains: Ordered domain tags
            domain_scores: Per-domain scores, aligned with domains
            domain_percentiles: Per-domain percentiles, aligned with domains

        Raises:
            NotActiveIssuerError: caller is not an active issuer
            ArrayLengthMismatchError: per-domain arrays do not match domains
            CredentialExistsError: owner already holds a valid credential
        """
        caller = normalize_address(caller)
        owner = normalize_address(owner)
        domains = [d.strip() for d in domains]

        if not (len(domains) == len(domain_scores) == len(domain_percentiles)):
            raise ArrayLengthMismatchError(len(domains), len(domain_scores), len(domain_percentiles))

        async with self._write_context(session) as s:
            if not await self.is_active_issuer(caller, session=s):
                logger.warning(f"Rejected mint for {owner} from inactive issuer {caller}")
                raise NotActiveIssuerError(caller)

            if await self.find_valid_credential(s, owner):
                raise CredentialExistsError(owner)

            now = self._now()
            credential = Credential(
                owner=owner,
                issuer=caller,
                player_name=player_name,
                base_score=int(base_score),
                base_percentile=int(base_percentile),
                total_matches=int(total_matches),
                win_rate_bps=int(win_rate_bps),
                issued_at=now,
                valid=True,
                domains=[
                    CredentialDomain(position=i, domain=domain, score=int(score), percentile=int(percentile))
                    for i, (domain, score, percentile)
                    in enumerate(zip(domains, domain_scores, domain_percentiles))
                ],
            )
            s.add(credential)
            await ensure_participant(s, owner, now)
            await s.flush()

            snapshot = to_snapshot(credential)
            self._notify(s, NotificationNames.CREDENTIAL_MINTED, {
                "owner": owner,
                "issuer": caller,
                "base_score": snapshot.base_score,
                "base_percentile": snapshot.base_percentile,
            })

        logger.info(f"Credential minted for {owner} by {caller}: score={base_score}, percentile={base_percentile}")
        return snapshot

    async def revoke_credential(self, caller: str, owner: str,
                                session: Optional[AsyncSession] = None):
        """Revoke an owner's valid credential. Allowed for its issuer and the owner of the core."""
        caller = normalize_address(caller)
        owner = normalize_address(owner)

        async with self._write_context(session) as s:
            credential = await self.find_valid_credential(s, owner)
            if not credential:
                raise NoCredentialError(owner)
            if caller != credential.issuer and not self.is_owner(caller):
                logger.warning(f"Rejected revocation of {owner}'s credential by {caller}")
                raise UnauthorizedError(caller, "revoke_credential")

            credential.valid = False
            credential.revoked_at = self._now()
            self._notify(s, NotificationNames.CREDENTIAL_REVOKED, {
                "owner": owner,
                "issuer": credential.issuer,
                "revoked_by": caller,
            })

        logger.info(f"Credential of {owner} revoked by {caller}")

    async def find_valid_credential(self, session: AsyncSession, address: str) -> Optional[Credential]:
        """Return the ORM row of an address's valid credential, if any."""
        return await session.scalar(
            select(Credential)
            .where(Credential.owner == address, Credential.valid.is_(True))
            .order_by(Credential.id.desc())
            .limit(1)
        )

    async def get_credential(self, address: str,
                             session: Optional[AsyncSession] = None) -> Optional[CredentialSnapshot]:
        """Most recent credential of an address, including a revoked one."""
        address = normalize_address(address)
        async with self._read_context(session) as s:
            credential = await s.scalar(
                select(Credential)
                .where(Credential.owner == address)
                .order_by(Credential.id.desc())
                .limit(1)
            )
            return to_snapshot(credential) if credential else None

    async def get_valid_credential(self, address: str,
                                   session: Optional[AsyncSession] = None) -> Optional[CredentialSnapshot]:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            credential = await self.find_valid_credential(s, address)
            return to_snapshot(credential) if credential else None

    async def has_valid_credential(self, address: str,
                                   session: Optional[AsyncSession] = None) -> bool:
        return await self.get_valid_credential(address, session=session) is not None

"""
Decay service.

Applies linear time decay to credential values. The multiplier drops by a
fixed number of basis points per full day since the credential was last
refreshed by its issuer (or issued, if never refreshed), down to a floor.
"""

from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.config import Config
from skillproof.constants import NotificationNames, ScaleConstants, TimeConstants
from skillproof.database.models import Credential, CredentialRefresh, DecayParameters
from skillproof.services.base import BaseService
from skillproof.services.participants import ensure_participant
from skillproof.utils.addresses import normalize_address
from skillproof.utils.exceptions import (
    InvalidMinimumError, NoCredentialError, NotIssuerError, RateTooHighError
)
from skillproof.utils.logger import setup_logger

logger = setup_logger(__name__)


def decay_multiplier_bps(days: int, rate_per_day_bps: int, minimum_bps: int) -> int:
    """Multiplier after a number of full days, never below the minimum"""
    return max(minimum_bps, ScaleConstants.BPS - rate_per_day_bps * days)


def apply_multiplier(raw: int, multiplier_bps: int) -> int:
    return raw * multiplier_bps // ScaleConstants.BPS


class DecayService(BaseService):
    """Time-based decay of credential scores and percentiles."""

    def __init__(self, database, credentials, clock=None, owner=None):
        super().__init__(database, clock=clock, owner=owner)
        self.credentials = credentials

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    async def get_decay_parameters(self, session: Optional[AsyncSession] = None) -> Tuple[int, int]:
        """Return (decay_rate_per_day_bps, minimum_multiplier_bps)."""
        async with self._read_context(session) as s:
            params = await s.scalar(select(DecayParameters).order_by(DecayParameters.id).limit(1))
            if not params:
                return Config.DECAY_RATE_PER_DAY_BPS, Config.MINIMUM_MULTIPLIER_BPS
            return params.decay_rate_per_day_bps, params.minimum_multiplier_bps

    async def update_decay_parameters(self, caller: str, decay_rate_per_day_bps: int,
                                      minimum_multiplier_bps: int,
                                      session: Optional[AsyncSession] = None):
        """
        Update the global decay parameters. Owner only.

        Raises:
            UnauthorizedError: caller is not the owner
            RateTooHighError: rate outside [0, MAX_DECAY_RATE_PER_DAY_BPS]
            InvalidMinimumError: minimum outside [0, 10000]
        """
        caller = normalize_address(caller)
        self._require_owner(caller, "update_decay_parameters")
        if not 0 <= decay_rate_per_day_bps <= Config.MAX_DECAY_RATE_PER_DAY_BPS:
            raise RateTooHighError(decay_rate_per_day_bps, Config.MAX_DECAY_RATE_PER_DAY_BPS)
        if not 0 <= minimum_multiplier_bps <= ScaleConstants.BPS:
            raise InvalidMinimumError(minimum_multiplier_bps)

        async with self._write_context(session) as s:
            old_rate, old_minimum = await self.get_decay_parameters(session=s)
            params = await s.scalar(select(DecayParameters).order_by(DecayParameters.id).limit(1))
            if not params:
                params = DecayParameters()
                s.add(params)
            params.decay_rate_per_day_bps = decay_rate_per_day_bps
            params.minimum_multiplier_bps = minimum_multiplier_bps
            params.updated_at = self._now()

            await self._audit(s, caller, "update_decay_parameters", None, {
                "old_rate": old_rate,
                "old_minimum": old_minimum,
                "new_rate": decay_rate_per_day_bps,
                "new_minimum": minimum_multiplier_bps,
            })
            self._notify(s, NotificationNames.DECAY_PARAMETERS_UPDATED, {
                "decay_rate_per_day_bps": decay_rate_per_day_bps,
                "minimum_multiplier_bps": minimum_multiplier_bps,
            })

        logger.info(
            f"Decay parameters updated by {caller}: rate {old_rate} -> {decay_rate_per_day_bps} bps/day, "
            f"minimum {old_minimum} -> {minimum_multiplier_bps} bps"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _load_anchor(self, session: AsyncSession, address: str) -> Tuple[Credential, int]:
        credential = await self.credentials.find_valid_credential(session, address)
        if not credential:
            raise NoCredentialError(address)
        last_refresh = await session.scalar(
            select(CredentialRefresh.last_refresh)
            .where(CredentialRefresh.credential_id == credential.id)
        )
        return credential, last_refresh if last_refresh is not None else credential.issued_at

    async def get_days_since_update(self, address: str,
                                    session: Optional[AsyncSession] = None) -> int:
        """Full days since the credential was last refreshed or issued."""
        address = normalize_address(address)
        async with self._read_context(session) as s:
            _, anchor = await self._load_anchor(s, address)
        return max(0, self._now() - anchor) // TimeConstants.SECONDS_PER_DAY

    async def get_decay_multiplier(self, address: str,
                                   session: Optional[AsyncSession] = None) -> int:
        async with self._read_context(session) as s:
            days = await self.get_days_since_update(address, session=s)
            rate, minimum = await self.get_decay_parameters(session=s)
        return decay_multiplier_bps(days, rate, minimum)

    async def decayed_value(self, raw: int, address: str,
                            session: Optional[AsyncSession] = None) -> int:
        return apply_multiplier(raw, await self.get_decay_multiplier(address, session=session))

    async def get_decayed_score(self, address: str,
                                session: Optional[AsyncSession] = None) -> int:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            credential, _ = await self._load_anchor(s, address)
            return await self.decayed_value(credential.base_score, address, session=s)

    async def get_decayed_percentile(self, address: str,
                                     session: Optional[AsyncSession] = None) -> int:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            credential, _ = await self._load_anchor(s, address)
            return await self.decayed_value(credential.base_percentile, address, session=s)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh_credential(self, caller: str, address: str,
                                 session: Optional[AsyncSession] = None):
        """
        Reset the decay anchor of an address's credential to now.

        Raises:
            NoCredentialError: address has no valid credential
            NotIssuerError: caller is not the credential's issuer
        """
        caller = normalize_address(caller)
        address = normalize_address(address)

        async with self._write_context(session) as s:
            credential = await self.credentials.find_valid_credential(s, address)
            if not credential:
                raise NoCredentialError(address)
            if caller != credential.issuer:
                logger.warning(f"Rejected refresh of {address} by non-issuer {caller}")
                raise NotIssuerError(caller, address)

            now = self._now()
            refresh = await s.scalar(
                select(CredentialRefresh).where(CredentialRefresh.credential_id == credential.id)
            )
            if refresh:
                refresh.last_refresh = now
            else:
                s.add(CredentialRefresh(credential_id=credential.id, last_refresh=now))
            await ensure_participant(s, address, now)

            self._notify(s, NotificationNames.CREDENTIAL_REFRESHED, {
                "address": address,
                "issuer": caller,
                "refreshed_at": now,
            })

        logger.info(f"Credential of {address} refreshed by {caller}")

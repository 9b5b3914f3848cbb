"""
Skill gate checks used by vaults, governance and bounty boards.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.data_models.scores import GateConfig, GateResult
from skillproof.utils.addresses import normalize_address
from skillproof.utils.logger import setup_logger

logger = setup_logger(__name__)


class SkillGate:
    """Checks an address's credential against gate requirements."""

    def __init__(self, credentials, decay, reputation):
        self.credentials = credentials
        self.decay = decay
        self.reputation = reputation

    async def check_gate(self, address: str, config: GateConfig,
                         session: Optional[AsyncSession] = None) -> GateResult:
        """
        Check an address against a gate configuration.

        The score checked is the effective score when use_effective_score is
        set, else the decayed score when use_decayed_score is set, else the
        credential's base score. Checks run in order: score, percentile,
        required domains; the first failure is reported.
        """
        address = normalize_address(address)
        credential = await self.credentials.get_valid_credential(address, session=session)
        if not credential:
            return GateResult(passed=False, reason="No credential found")

        score = credential.base_score
        if config.use_effective_score:
            score = await self.reputation.effective_score(address, session=session)
        elif config.use_decayed_score:
            score = await self.decay.get_decayed_score(address, session=session)

        percentile = credential.base_percentile
        domains = credential.domain_names

        def failed(reason: str) -> GateResult:
            logger.debug(f"Gate check failed for {address}: {reason}")
            return GateResult(passed=False, reason=reason, score=score,
                              percentile=percentile, domains=domains)

        if config.min_score is not None and score < config.min_score:
            return failed(f"Score {score} below minimum {config.min_score}")

        if config.min_percentile is not None and percentile < config.min_percentile:
            return failed(f"Percentile {percentile} below minimum {config.min_percentile}")

        missing = [d for d in config.required_domains if d not in domains]
        if missing:
            return failed(f"Missing domains: {', '.join(missing)}")

        return GateResult(passed=True, score=score, percentile=percentile, domains=domains)

    async def meets_threshold(self, address: str, threshold: int,
                              session: Optional[AsyncSession] = None) -> bool:
        """Whether the effective score reaches a threshold, e.g. for vault withdrawals."""
        return await self.reputation.effective_score(address, session=session) >= threshold

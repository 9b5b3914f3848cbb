"""
Shared fixtures: an in-memory database per test, a controllable clock and
a credential-minting helper.
"""

import pytest
import pytest_asyncio

from skillproof.constants import TimeConstants
from skillproof.core import SkillProofCore

OWNER = "0xowner"
ISSUER = "0xissuer"
START_TIME = 1_700_000_000


class FakeClock:
    """Clock returning integer seconds that tests advance by hand."""

    def __init__(self, start: int = START_TIME):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, days: int = 0, seconds: int = 0):
        self.now += days * TimeConstants.SECONDS_PER_DAY + seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def core(clock):
    core = SkillProofCore(database_url="sqlite+aiosqlite:///:memory:", owner=OWNER, clock=clock)
    await core.initialize()
    await core.credentials.register_issuer(OWNER, ISSUER, "Chess Guild")
    yield core
    await core.close()


@pytest.fixture
def mint(core):
    """Mint a credential from the default issuer with generated domain tags."""
    async def _mint(owner, score, percentile, matches=0, domain_count=0, domains=None, issuer=ISSUER):
        if domains is None:
            domains = [f"domain-{i}" for i in range(domain_count)]
        return await core.credentials.mint_credential(
            issuer,
            owner,
            base_score=score,
            base_percentile=percentile,
            domains=domains,
            domain_scores=[score] * len(domains),
            domain_percentiles=[percentile] * len(domains),
            total_matches=matches,
        )
    return _mint


@pytest.fixture
def notifications(core):
    """Collect every notification emitted by the core as (name, payload) pairs."""
    received = []
    core.add_listener_for_all(lambda name, payload: received.append((name, payload)))
    return received

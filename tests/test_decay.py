"""
Tests for the decay service.
"""

import json

import pytest
from sqlalchemy import select

from conftest import ISSUER, OWNER
from skillproof.database.models import AuditLog
from skillproof.utils.exceptions import (
    InvalidMinimumError, NoCredentialError, NotIssuerError, RateTooHighError, UnauthorizedError
)

pytestmark = pytest.mark.asyncio

ALICE = "0xalice"


@pytest.fixture
def decay(core):
    return core.decay


@pytest.mark.parametrize("days, expected", [
    (0, 10000), (10, 9000), (30, 7000), (50, 5000), (100, 5000),
])
async def test_multiplier_over_time(decay, mint, clock, days, expected):
    await mint(ALICE, 1847, 96)
    clock.advance(days=days)

    assert await decay.get_days_since_update(ALICE) == days
    assert await decay.get_decay_multiplier(ALICE) == expected


async def test_partial_days_are_floored(decay, mint, clock):
    await mint(ALICE, 1847, 96)
    clock.advance(days=10, seconds=86399)
    assert await decay.get_days_since_update(ALICE) == 10


async def test_decayed_values(decay, mint, clock):
    await mint(ALICE, 1847, 96)
    clock.advance(days=10)

    assert await decay.get_decayed_score(ALICE) == 1662
    assert await decay.get_decayed_percentile(ALICE) == 86
    assert await decay.decayed_value(1000, ALICE) == 900

    clock.advance(days=90)
    assert await decay.get_decayed_score(ALICE) == 923


async def test_refresh_resets_decay(decay, mint, clock):
    await mint(ALICE, 1847, 96)
    clock.advance(days=20)
    assert await decay.get_decay_multiplier(ALICE) == 8000

    await decay.refresh_credential(ISSUER, ALICE)
    assert await decay.get_days_since_update(ALICE) == 0
    assert await decay.get_decay_multiplier(ALICE) == 10000

    clock.advance(days=5)
    assert await decay.get_decay_multiplier(ALICE) == 9500


async def test_refresh_requires_issuer(decay, mint):
    await mint(ALICE, 1847, 96)
    with pytest.raises(NotIssuerError) as exc_info:
        await decay.refresh_credential("0xstranger", ALICE)
    assert exc_info.value.user_message == "Only issuer can refresh"

    # The owner of the core is not the credential's issuer either
    with pytest.raises(NotIssuerError):
        await decay.refresh_credential(OWNER, ALICE)


async def test_missing_credential(decay, core, mint):
    with pytest.raises(NoCredentialError) as exc_info:
        await decay.refresh_credential(ISSUER, ALICE)
    assert exc_info.value.user_message == "No credential"

    with pytest.raises(NoCredentialError):
        await decay.get_days_since_update(ALICE)
    with pytest.raises(NoCredentialError):
        await decay.get_decayed_score(ALICE)

    await mint(ALICE, 1847, 96)
    await core.credentials.revoke_credential(ISSUER, ALICE)
    with pytest.raises(NoCredentialError):
        await decay.get_decay_multiplier(ALICE)


async def test_reminted_credential_starts_fresh(decay, core, mint, clock):
    await mint(ALICE, 1847, 96)
    clock.advance(days=5)
    await decay.refresh_credential(ISSUER, ALICE)
    await core.credentials.revoke_credential(ISSUER, ALICE)

    clock.advance(days=10)
    await mint(ALICE, 1500, 70)
    clock.advance(days=3)
    assert await decay.get_days_since_update(ALICE) == 3


class TestParameters:
    async def test_defaults(self, decay):
        assert await decay.get_decay_parameters() == (100, 5000)

    async def test_update(self, decay, mint, clock, core):
        await mint(ALICE, 1847, 96)
        await decay.update_decay_parameters(OWNER, 200, 5000)
        clock.advance(days=10)

        assert await decay.get_decay_parameters() == (200, 5000)
        assert await decay.get_decay_multiplier(ALICE) == 8000
        assert await decay.get_decayed_score(ALICE) == 1477

        async with core.db.get_session() as session:
            entry = await session.scalar(
                select(AuditLog).where(AuditLog.action == "update_decay_parameters")
            )
        assert entry.actor == OWNER
        assert json.loads(entry.details) == {
            "old_rate": 100, "old_minimum": 5000, "new_rate": 200, "new_minimum": 5000,
        }

    @pytest.mark.parametrize("rate, minimum, error", [
        (1001, 5000, RateTooHighError),
        (-1, 5000, RateTooHighError),
        (100, 10001, InvalidMinimumError),
        (100, -1, InvalidMinimumError),
    ])
    async def test_out_of_range(self, decay, rate, minimum, error):
        with pytest.raises(error):
            await decay.update_decay_parameters(OWNER, rate, minimum)
        assert await decay.get_decay_parameters() == (100, 5000)

    async def test_owner_only(self, decay):
        with pytest.raises(UnauthorizedError):
            await decay.update_decay_parameters("0xstranger", 200, 5000)

    async def test_bounds_accepted(self, decay):
        await decay.update_decay_parameters(OWNER, 1000, 0)
        assert await decay.get_decay_parameters() == (1000, 0)

    async def test_notification(self, decay, notifications):
        await decay.update_decay_parameters(OWNER, 250, 4000)
        assert ("decay_parameters_updated", {
            "decay_rate_per_day_bps": 250,
            "minimum_multiplier_bps": 4000,
        }) in notifications

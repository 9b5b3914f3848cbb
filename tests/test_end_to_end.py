"""
End-to-end scenarios across all scoring components.
"""

import pytest

from conftest import ISSUER, OWNER
from skillproof.core import SkillProofCore
from skillproof.data_models.scores import GateConfig
from skillproof.services.reputation import OutcomeKind
from skillproof.utils.exceptions import CredentialExistsError

pytestmark = pytest.mark.asyncio

TRADER = "0xtrader"


async def test_reputation_lifts_trader_over_gate(core, mint):
    await mint(TRADER, 1450, 70)
    assert not await core.gate.meets_threshold(TRADER, 1500)

    for market in range(6):
        await core.reputation.apply_outcome(
            TRADER, OutcomeKind.CORRECT_PREDICTION, reference=f"market-{market}"
        )
    assert await core.reputation.effective_score(TRADER) == 1510
    assert await core.gate.meets_threshold(TRADER, 1500)

    await core.reputation.apply_outcome(TRADER, OutcomeKind.INCORRECT_PREDICTION)
    assert await core.reputation.effective_score(TRADER) == 1505
    assert await core.gate.meets_threshold(TRADER, 1500)


async def test_matches_credentials_and_links(core, mint, clock, notifications):
    await core.ratings.add_reporter(OWNER, "0xarena")
    await core.ratings.register_player(TRADER, ["trading"])
    await core.ratings.register_player("0xrival", ["trading"])
    for _ in range(3):
        await core.ratings.record_match("0xarena", TRADER, "0xrival", 1, "trading")

    player = await core.ratings.get_player_rating(TRADER)
    await mint(
        TRADER, player.rating, 90,
        matches=player.match_count,
        domains=list(player.domain_ratings),
    )
    await mint("0xtrader-alt", 1600, 80, matches=20, domain_count=2)
    await core.aggregator.link_address("0xtrader-alt", TRADER, "0xtrader-alt")

    score = await core.aggregator.get_aggregate_score(TRADER)
    assert score.issuer_count == 2
    assert score.composite_score == (player.rating + 1600) // 2
    assert score.total_matches == 23
    assert score.overall_score == score.composite_score + 50

    clock.advance(days=40)
    assert await core.decay.get_decay_multiplier(TRADER) == 6000
    await core.decay.refresh_credential(ISSUER, TRADER)
    result = await core.gate.check_gate(
        TRADER, GateConfig(min_score=1200, required_domains=("trading",), use_decayed_score=True)
    )
    assert result.passed

    names = [name for name, _ in notifications]
    assert names.count("match_recorded") == 3
    assert "address_linked" in names
    assert "credential_refreshed" in names
    assert await core.ratings.verify_ratings() == []


async def test_transaction_spans_services(core):
    async with core.db.transaction() as session:
        await core.credentials.mint_credential(ISSUER, TRADER, 1500, 80, session=session)
        await core.reputation.apply_outcome(TRADER, OutcomeKind.BOUNTY_WON, session=session)

    assert await core.reputation.effective_score(TRADER) == 1515


async def test_failed_transaction_rolls_back_everything(core, notifications):
    with pytest.raises(CredentialExistsError):
        async with core.db.transaction() as session:
            await core.reputation.apply_outcome(TRADER, OutcomeKind.BOUNTY_WON, session=session)
            await core.credentials.mint_credential(ISSUER, TRADER, 1500, 80, session=session)
            await core.credentials.mint_credential(ISSUER, TRADER, 1500, 80, session=session)

    assert await core.reputation.get_reputation(TRADER) == 0
    assert not await core.reputation.is_participant(TRADER)
    assert not await core.credentials.has_valid_credential(TRADER)
    assert notifications == []


async def test_listener_failure_does_not_block_others(core):
    received = []

    def broken(name, payload):
        raise RuntimeError("listener down")

    async def working(name, payload):
        received.append(payload["address"])

    core.add_listener("reputation_updated", broken)
    core.add_listener("reputation_updated", working)
    await core.reputation.apply_outcome(TRADER, OutcomeKind.CORRECT_PREDICTION)

    assert received == [TRADER]
    assert await core.reputation.get_reputation(TRADER) == 10


async def test_core_as_context_manager(clock):
    async with SkillProofCore("sqlite+aiosqlite:///:memory:", owner=OWNER, clock=clock) as core:
        await core.ratings.register_player(TRADER)
        assert await core.ratings.get_player_count() == 1

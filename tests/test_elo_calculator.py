"""
Tests for the integer Elo calculator.
"""

import random

import pytest

from skillproof.config import Config
from skillproof.utils.elo import EloCalculator, MatchOutcome, RatingState, _div_trunc
from skillproof.utils.exceptions import InvalidOutcomeError


class TestExpectedScore:
    def test_even_ratings(self):
        assert EloCalculator.calculate_expected_score(1200, 1200) == 5000

    def test_linear_inside_clamp(self):
        assert EloCalculator.calculate_expected_score(1250, 1200) == 5500
        assert EloCalculator.calculate_expected_score(1400, 1200) == 7000
        assert EloCalculator.calculate_expected_score(1000, 1200) == 3000

    def test_clamped_at_400(self):
        assert EloCalculator.calculate_expected_score(1400, 1000) == 9000
        assert EloCalculator.calculate_expected_score(2400, 1000) == 9000
        assert EloCalculator.calculate_expected_score(1000, 2400) == 1000


class TestKFactor:
    def test_new_player(self):
        assert EloCalculator.get_k_factor(1200, 0) == 32
        assert EloCalculator.get_k_factor(1200, 29) == 32

    def test_established_player(self):
        assert EloCalculator.get_k_factor(1200, 30) == 24

    def test_rating_tier_takes_precedence(self):
        assert EloCalculator.get_k_factor(2000, 0) == 16
        assert EloCalculator.get_k_factor(2100, 100) == 16


def test_division_truncates_toward_zero():
    assert _div_trunc(128000, 10000) == 12
    assert _div_trunc(-128000, 10000) == -12
    assert _div_trunc(-32000, 10000) == -3
    assert _div_trunc(0, 10000) == 0


@pytest.mark.parametrize("outcome, expected", [
    (MatchOutcome.PLAYER1_WIN, (3, -3)),
    (MatchOutcome.PLAYER2_WIN, (-28, 28)),
    (MatchOutcome.DRAW, (-12, 12)),
])
def test_changes_for_400_point_gap(outcome, expected):
    favourite = RatingState.initial(1400)
    underdog = RatingState.initial(1000)
    assert EloCalculator.calculate_match_elo_changes(favourite, underdog, outcome) == expected


def test_outcome_coercion():
    assert MatchOutcome.coerce(1) is MatchOutcome.PLAYER1_WIN
    assert MatchOutcome.coerce(MatchOutcome.DRAW) is MatchOutcome.DRAW
    for bad in (0, 4, "1", None, True):
        with pytest.raises(InvalidOutcomeError):
            MatchOutcome.coerce(bad)


def test_apply_change_seeds_missing_domain():
    state = RatingState.initial(1500, ["chess"])
    after = EloCalculator.apply_change(state, -16, 0, "go")
    assert after.rating == 1484
    assert after.domain_ratings == {"chess": 1500, "go": Config.STARTING_RATING - 16}


def test_invariants_hold_over_random_history():
    rng = random.Random(20240601)
    players = [RatingState.initial(r) for r in (100, 150, 1200, 1900, 2050)]

    for _ in range(500):
        i, j = rng.sample(range(len(players)), 2)
        outcome = MatchOutcome(rng.randint(1, 3))
        before_i, before_j = players[i], players[j]
        players[i], players[j], change_i, change_j = EloCalculator.apply_match(
            before_i, before_j, outcome, domain="arena"
        )

        k_i = EloCalculator.get_k_factor(before_i.rating, before_i.match_count)
        k_j = EloCalculator.get_k_factor(before_j.rating, before_j.match_count)
        if k_i == k_j:
            assert change_i == -change_j

        for before, after in ((before_i, players[i]), (before_j, players[j])):
            assert after.rating >= Config.MIN_RATING
            assert after.domain_ratings["arena"] >= Config.MIN_RATING
            assert after.peak_rating >= before.peak_rating
            assert after.peak_rating >= after.rating
            assert after.match_count == after.wins + after.losses + after.draws
            assert after.longest_streak >= after.current_streak


def test_win_rate():
    assert EloCalculator.calculate_win_rate(3, 4) == 7500
    assert EloCalculator.calculate_win_rate(0, 0) == 0

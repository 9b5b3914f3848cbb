from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Tuple

from skillproof.config import Config
from skillproof.constants import ScaleConstants
from skillproof.utils.exceptions import InvalidOutcomeError


class MatchOutcome(Enum):
    """Result of a pairwise match, from player 1's point of view"""
    PLAYER1_WIN = 1
    PLAYER2_WIN = 2
    DRAW = 3

    @classmethod
    def coerce(cls, value) -> "MatchOutcome":
        """Accept a MatchOutcome or its integer code"""
        if isinstance(value, cls):
            return value
        # bool is an int subclass but never a valid outcome code
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidOutcomeError(value)
        try:
            return cls(value)
        except ValueError:
            raise InvalidOutcomeError(value) from None


@dataclass(frozen=True)
class RatingState:
    """Numeric rating state of one player, independent of storage"""
    rating: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    match_count: int = 0
    peak_rating: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    domain_ratings: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def initial(cls, rating: int, domains=()) -> "RatingState":
        return cls(
            rating=rating,
            peak_rating=rating,
            domain_ratings={domain: rating for domain in domains},
        )


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero (Python's // rounds down)"""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


class EloCalculator:
    """Integer-only Elo calculations shared by live recording, simulation and replay"""

    @staticmethod
    def calculate_expected_score(rating_a: int, rating_b: int) -> int:
        """
        Calculate the expected score for player A against player B

        Args:
            rating_a: Player A's current rating
            rating_b: Player B's current rating

        Returns:
            Expected score in basis points, within [1000, 9000]
        """
        diff = max(-Config.MAX_RATING_DIFF, min(Config.MAX_RATING_DIFF, rating_a - rating_b))
        return ScaleConstants.EXPECTED_SCORE_EVEN_BPS + ScaleConstants.EXPECTED_SCORE_SLOPE_BPS * diff

    @staticmethod
    def get_k_factor(rating: int, matches_played: int) -> int:
        """
        Get the K-factor for a player. The rating tier takes precedence
        over the experience tier.
        """
        if rating >= Config.EXPERT_RATING_THRESHOLD:
            return Config.K_FACTOR_EXPERT
        if matches_played >= Config.ESTABLISHED_MATCH_COUNT:
            return Config.K_FACTOR_ESTABLISHED
        return Config.K_FACTOR_NEW

    @staticmethod
    def actual_scores(outcome: MatchOutcome) -> Tuple[int, int]:
        """Actual scores in basis points for (player1, player2)"""
        if outcome == MatchOutcome.PLAYER1_WIN:
            return ScaleConstants.WIN_SCORE_BPS, ScaleConstants.LOSS_SCORE_BPS
        if outcome == MatchOutcome.PLAYER2_WIN:
            return ScaleConstants.LOSS_SCORE_BPS, ScaleConstants.WIN_SCORE_BPS
        return ScaleConstants.DRAW_SCORE_BPS, ScaleConstants.DRAW_SCORE_BPS

    @staticmethod
    def calculate_elo_change(current_rating: int, opponent_rating: int,
                             actual_score_bps: int, matches_played: int) -> int:
        """
        Calculate the rating change for one side of a match

        Args:
            current_rating: Player's current rating
            opponent_rating: Opponent's current rating
            actual_score_bps: 10000 for a win, 5000 for a draw, 0 for a loss
            matches_played: Number of matches the player has played

        Returns:
            Rating change, truncated toward zero
        """
        expected = EloCalculator.calculate_expected_score(current_rating, opponent_rating)
        k_factor = EloCalculator.get_k_factor(current_rating, matches_played)
        return _div_trunc(k_factor * (actual_score_bps - expected), ScaleConstants.BPS)

    @staticmethod
    def calculate_match_elo_changes(player1: RatingState, player2: RatingState,
                                    outcome: MatchOutcome) -> Tuple[int, int]:
        """Calculate rating changes for both players without touching either state"""
        score1, score2 = EloCalculator.actual_scores(outcome)
        change1 = EloCalculator.calculate_elo_change(
            player1.rating, player2.rating, score1, player1.match_count
        )
        change2 = EloCalculator.calculate_elo_change(
            player2.rating, player1.rating, score2, player2.match_count
        )
        return change1, change2

    @staticmethod
    def apply_change(state: RatingState, change: int, actual_score_bps: int,
                     domain: str = "") -> RatingState:
        """Return the state after one match with an already computed change"""
        new_rating = max(Config.MIN_RATING, state.rating + change)

        won = actual_score_bps == ScaleConstants.WIN_SCORE_BPS
        lost = actual_score_bps == ScaleConstants.LOSS_SCORE_BPS
        current_streak = state.current_streak + 1 if won else 0

        domain_ratings = dict(state.domain_ratings)
        if domain:
            base = domain_ratings.get(domain, Config.STARTING_RATING)
            domain_ratings[domain] = max(Config.MIN_RATING, base + change)

        return replace(
            state,
            rating=new_rating,
            wins=state.wins + (1 if won else 0),
            losses=state.losses + (1 if lost else 0),
            draws=state.draws + (1 if not (won or lost) else 0),
            match_count=state.match_count + 1,
            peak_rating=max(state.peak_rating, new_rating),
            current_streak=current_streak,
            longest_streak=max(state.longest_streak, current_streak),
            domain_ratings=domain_ratings,
        )

    @staticmethod
    def apply_match(player1: RatingState, player2: RatingState, outcome: MatchOutcome,
                    domain: str = "") -> Tuple[RatingState, RatingState, int, int]:
        """
        Apply one match to both players

        Returns:
            Tuple of (new_player1, new_player2, player1_change, player2_change)
        """
        change1, change2 = EloCalculator.calculate_match_elo_changes(player1, player2, outcome)
        score1, score2 = EloCalculator.actual_scores(outcome)
        return (
            EloCalculator.apply_change(player1, change1, score1, domain),
            EloCalculator.apply_change(player2, change2, score2, domain),
            change1,
            change2,
        )

    @staticmethod
    def calculate_win_rate(wins: int, matches_played: int) -> int:
        """Win rate in basis points, 0 when no matches have been played"""
        if matches_played == 0:
            return 0
        return wins * ScaleConstants.BPS // matches_played

    @staticmethod
    def format_elo_change(elo_change: int) -> str:
        """Format a rating change with an explicit sign for log lines"""
        if elo_change > 0:
            return f"+{elo_change}"
        return str(elo_change)

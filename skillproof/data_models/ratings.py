"""
Rating data models.

Immutable data transfer objects returned by the rating engine read paths.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from skillproof.utils.elo import MatchOutcome, RatingState


@dataclass(frozen=True)
class PlayerRatingSnapshot:
    """Rating state of one address. Unknown addresses read as the zero value."""
    address: str
    rating: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    match_count: int = 0
    peak_rating: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    domain_ratings: Dict[str, int] = field(default_factory=dict)
    registered: bool = False

    @classmethod
    def from_state(cls, address: str, state: RatingState, registered: bool = True) -> "PlayerRatingSnapshot":
        return cls(
            address=address,
            rating=state.rating,
            wins=state.wins,
            losses=state.losses,
            draws=state.draws,
            match_count=state.match_count,
            peak_rating=state.peak_rating,
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            domain_ratings=dict(state.domain_ratings),
            registered=registered,
        )


@dataclass(frozen=True)
class MatchSnapshot:
    """One entry of the append-only match log."""
    index: int
    player1: str
    player2: str
    outcome: MatchOutcome
    domain: str
    player1_rating_before: int
    player2_rating_before: int
    player1_change: int
    player2_change: int
    timestamp: int


@dataclass(frozen=True)
class RatingMismatch:
    """Stored rating state that differs from a replay of the match log."""
    address: str
    stored: PlayerRatingSnapshot
    replayed: Optional[PlayerRatingSnapshot]

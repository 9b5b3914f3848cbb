"""
Scoring-core constants.

This module contains the fixed numbers shared by the rating engine, decay
function, aggregator and reputation ledger. Tunable values live in Config.
"""

class ScaleConstants:
    """Fixed-point scales used by integer arithmetic."""

    # 10000 basis points = 100%
    BPS = 10000

    # Expected score at equal ratings and slope per rating point
    EXPECTED_SCORE_EVEN_BPS = 5000
    EXPECTED_SCORE_SLOPE_BPS = 10

    # Actual score per result
    WIN_SCORE_BPS = 10000
    DRAW_SCORE_BPS = 5000
    LOSS_SCORE_BPS = 0

class TimeConstants:
    """Time units, all in seconds."""

    SECONDS_PER_DAY = 86400

class AggregatorConstants:
    """Constants for cross-issuer aggregation."""

    # Bonus added per additional valid issuer beyond the first
    CROSS_DOMAIN_BONUS_PER_ISSUER = 50

class ReputationConstants:
    """Reputation deltas per outcome kind."""

    CORRECT_PREDICTION_DELTA = 10
    INCORRECT_PREDICTION_DELTA = -5
    BOUNTY_WON_DELTA = 15

    # Reputation points per extra unit of voting power
    VOTING_POWER_DIVISOR = 10

class PaginationConstants:
    """Constants for paginated reads."""

    DEFAULT_PAGE_SIZE = 10

class NotificationNames:
    """Names of notifications emitted after a mutation commits."""

    PLAYER_REGISTERED = "player_registered"
    MATCH_RECORDED = "match_recorded"
    REPORTER_UPDATED = "reporter_updated"
    CREDENTIAL_MINTED = "credential_minted"
    CREDENTIAL_REVOKED = "credential_revoked"
    CREDENTIAL_REFRESHED = "credential_refreshed"
    DECAY_PARAMETERS_UPDATED = "decay_parameters_updated"
    ADDRESS_LINKED = "address_linked"
    ADDRESS_UNLINKED = "address_unlinked"
    REPUTATION_UPDATED = "reputation_updated"
    PARTICIPANT_REGISTERED = "participant_registered"

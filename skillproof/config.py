import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Scoring core configuration settings"""

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///skillproof.db')

    # Runtime settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_FILE_ENABLED = os.getenv('LOG_FILE_ENABLED', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Owner of the parameter set, link graph and reporter list
    OWNER_ADDRESS = os.getenv('OWNER_ADDRESS', '')

    # Rating settings
    STARTING_RATING = 1200
    MIN_RATING = 100
    MAX_RATING_DIFF = 400

    # K-factor tiers
    K_FACTOR_NEW = 32          # Fewer than ESTABLISHED_MATCH_COUNT matches
    K_FACTOR_ESTABLISHED = 24  # ESTABLISHED_MATCH_COUNT matches or more
    K_FACTOR_EXPERT = 16       # Rating at or above EXPERT_RATING_THRESHOLD
    ESTABLISHED_MATCH_COUNT = 30
    EXPERT_RATING_THRESHOLD = 2000

    # Decay settings (basis points)
    DECAY_RATE_PER_DAY_BPS = int(os.getenv('DECAY_RATE_PER_DAY_BPS', 100))
    MINIMUM_MULTIPLIER_BPS = int(os.getenv('MINIMUM_MULTIPLIER_BPS', 5000))
    MAX_DECAY_RATE_PER_DAY_BPS = 1000

    @classmethod
    def get_async_database_url(cls, database_url: str = None) -> str:
        """Convert a sqlite URL to its aiosqlite form if needed"""
        url = database_url or cls.DATABASE_URL
        if url.startswith('sqlite:///'):
            url = url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return url

    @classmethod
    def validate(cls):
        """Validate that configured values are within their allowed ranges"""
        if not 0 <= cls.DECAY_RATE_PER_DAY_BPS <= cls.MAX_DECAY_RATE_PER_DAY_BPS:
            raise ValueError(
                f"DECAY_RATE_PER_DAY_BPS must be within [0, {cls.MAX_DECAY_RATE_PER_DAY_BPS}]"
            )
        if not 0 <= cls.MINIMUM_MULTIPLIER_BPS <= 10000:
            raise ValueError("MINIMUM_MULTIPLIER_BPS must be within [0, 10000]")
        if cls.MIN_RATING > cls.STARTING_RATING:
            raise ValueError("MIN_RATING cannot exceed STARTING_RATING")

"""
Services package for the scoring core.
"""

from .base import BaseService
from .credentials import CredentialService
from .rating_engine import RatingEngine
from .decay import DecayService
from .aggregator import AggregatorService
from .reputation import ReputationService, Outcome, OutcomeKind
from .gate import SkillGate

__all__ = [
    'BaseService', 'CredentialService', 'RatingEngine', 'DecayService',
    'AggregatorService', 'ReputationService', 'Outcome', 'OutcomeKind', 'SkillGate'
]

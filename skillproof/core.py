from typing import Callable, Optional

from skillproof.config import Config
from skillproof.constants import NotificationNames
from skillproof.database.database import Database
from skillproof.services import (
    AggregatorService, CredentialService, DecayService, RatingEngine,
    ReputationService, SkillGate
)
from skillproof.utils.logger import setup_logger

class SkillProofCore:
    """
    Wires the database handle and the scoring services together.

    Usage:
        async with SkillProofCore(owner="0xowner") as core:
            await core.ratings.register_player("0xalice")
            score = await core.aggregator.get_aggregate_score("0xalice")
    """

    def __init__(self, database_url: Optional[str] = None, owner: Optional[str] = None,
                 clock: Optional[Callable[[], int]] = None):
        self.database_url = database_url
        self.owner = owner if owner is not None else Config.OWNER_ADDRESS
        self.clock = clock
        self.logger = setup_logger(__name__)

        self.db: Optional[Database] = None
        self.credentials: Optional[CredentialService] = None
        self.ratings: Optional[RatingEngine] = None
        self.decay: Optional[DecayService] = None
        self.aggregator: Optional[AggregatorService] = None
        self.reputation: Optional[ReputationService] = None
        self.gate: Optional[SkillGate] = None

    async def initialize(self):
        """Open the database and create the services"""
        self.logger.info("Setting up scoring core...")
        Config.validate()

        self.db = Database(self.database_url)
        await self.db.initialize()

        common = dict(clock=self.clock, owner=self.owner)
        self.credentials = CredentialService(self.db, **common)
        self.ratings = RatingEngine(self.db, **common)
        self.decay = DecayService(self.db, self.credentials, **common)
        self.aggregator = AggregatorService(self.db, self.credentials, **common)
        self.reputation = ReputationService(self.db, self.credentials, **common)
        self.gate = SkillGate(self.credentials, self.decay, self.reputation)

        self.logger.info("Scoring core setup complete!")
        return self

    @property
    def services(self):
        return [self.credentials, self.ratings, self.decay, self.aggregator, self.reputation]

    def add_listener(self, name: str, callback: Callable):
        """Register a callback for a notification name on every service"""
        for service in self.services:
            service.add_listener(name, callback)

    def add_listener_for_all(self, callback: Callable):
        for name, value in vars(NotificationNames).items():
            if not name.startswith('_'):
                self.add_listener(value, callback)

    async def close(self):
        if self.db:
            await self.db.close()

    async def __aenter__(self):
        return await self.initialize()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

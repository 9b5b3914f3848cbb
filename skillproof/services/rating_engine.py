"""
Rating engine service.

Maintains per-player rating state and applies pairwise match outcomes using
the integer calculator in skillproof.utils.elo. The match log is append-only
and holds enough information to recompute every player's state.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillproof.config import Config
from skillproof.constants import NotificationNames
from skillproof.data_models.ratings import MatchSnapshot, PlayerRatingSnapshot, RatingMismatch
from skillproof.database.models import (
    AuthorizedReporter, MatchRecord, PlayerDomainRating, PlayerRating
)
from skillproof.services.base import BaseService
from skillproof.services.participants import ensure_participant
from skillproof.utils.addresses import normalize_address, normalize_domains
from skillproof.utils.elo import EloCalculator, MatchOutcome, RatingState
from skillproof.utils.exceptions import (
    AlreadyRegisteredError, InvalidRatingError, NotRegisteredError,
    SelfPlayError, UnauthorizedError
)
from skillproof.utils.logger import setup_logger

logger = setup_logger(__name__)


def _to_state(player: PlayerRating) -> RatingState:
    return RatingState(
        rating=player.rating,
        wins=player.wins,
        losses=player.losses,
        draws=player.draws,
        match_count=player.match_count,
        peak_rating=player.peak_rating,
        current_streak=player.current_streak,
        longest_streak=player.longest_streak,
        domain_ratings={d.domain: d.rating for d in player.domain_ratings},
    )


def _to_match_snapshot(index: int, record: MatchRecord) -> MatchSnapshot:
    return MatchSnapshot(
        index=index,
        player1=record.player1,
        player2=record.player2,
        outcome=MatchOutcome(record.outcome),
        domain=record.domain,
        player1_rating_before=record.player1_rating_before,
        player2_rating_before=record.player2_rating_before,
        player1_change=record.player1_change,
        player2_change=record.player2_change,
        timestamp=record.timestamp,
    )


class RatingEngine(BaseService):
    """Elo-style rating engine with tiered K-factors and domain ratings."""

    # ------------------------------------------------------------------
    # Reporters
    # ------------------------------------------------------------------

    async def is_reporter(self, address: str, session: Optional[AsyncSession] = None) -> bool:
        address = normalize_address(address)
        async with self._read_context(session) as s:
            found = await s.scalar(
                select(AuthorizedReporter.id).where(AuthorizedReporter.address == address)
            )
            return found is not None

    async def _is_authorized(self, session: AsyncSession, caller: str) -> bool:
        return self.is_owner(caller) or await self.is_reporter(caller, session=session)

    async def add_reporter(self, caller: str, reporter: str,
                           session: Optional[AsyncSession] = None):
        """Authorize an address to register players and record matches. Owner only."""
        caller = normalize_address(caller)
        reporter = normalize_address(reporter)
        self._require_owner(caller, "add_reporter")

        async with self._write_context(session) as s:
            if await self.is_reporter(reporter, session=s):
                return
            s.add(AuthorizedReporter(address=reporter, added_at=self._now()))
            await self._audit(s, caller, "add_reporter", reporter)
            self._notify(s, NotificationNames.REPORTER_UPDATED, {"reporter": reporter, "authorized": True})

        logger.info(f"Reporter {reporter} authorized by {caller}")

    async def remove_reporter(self, caller: str, reporter: str,
                              session: Optional[AsyncSession] = None):
        caller = normalize_address(caller)
        reporter = normalize_address(reporter)
        self._require_owner(caller, "remove_reporter")

        async with self._write_context(session) as s:
            record = await s.scalar(
                select(AuthorizedReporter).where(AuthorizedReporter.address == reporter)
            )
            if not record:
                return
            await s.delete(record)
            await self._audit(s, caller, "remove_reporter", reporter)
            self._notify(s, NotificationNames.REPORTER_UPDATED, {"reporter": reporter, "authorized": False})

        logger.info(f"Reporter {reporter} removed by {caller}")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_player(self, address: str, domains: Iterable[str] = (),
                              initial_rating: Optional[int] = None,
                              session: Optional[AsyncSession] = None) -> PlayerRatingSnapshot:
        """
        Register a player with an initial rating applied to every named domain.

        Raises:
            AlreadyRegisteredError: address is already registered
            InvalidRatingError: initial rating is below the rating floor
        """
        address = normalize_address(address)
        domains = normalize_domains(domains)
        if initial_rating is None:
            initial_rating = Config.STARTING_RATING
        if isinstance(initial_rating, bool) or not isinstance(initial_rating, int) \
                or initial_rating < Config.MIN_RATING:
            raise InvalidRatingError(initial_rating, Config.MIN_RATING)

        async with self._write_context(session) as s:
            if await self._find_player(s, address):
                raise AlreadyRegisteredError(address)

            now = self._now()
            player = PlayerRating(
                address=address,
                rating=initial_rating,
                initial_rating=initial_rating,
                peak_rating=initial_rating,
                wins=0,
                losses=0,
                draws=0,
                match_count=0,
                current_streak=0,
                longest_streak=0,
                registered_at=now,
                domain_ratings=[
                    PlayerDomainRating(domain=domain, rating=initial_rating, seeded_at_registration=True)
                    for domain in domains
                ],
            )
            s.add(player)
            await ensure_participant(s, address, now)

            self._notify(s, NotificationNames.PLAYER_REGISTERED, {
                "address": address,
                "rating": initial_rating,
                "domains": list(domains),
            })
            snapshot = PlayerRatingSnapshot.from_state(address, RatingState.initial(initial_rating, domains))

        logger.info(f"Player {address} registered at {initial_rating} with domains {domains}")
        return snapshot

    async def register_player_by_address(self, caller: str, address: str,
                                         initial_rating: Optional[int] = None,
                                         domains: Iterable[str] = (),
                                         session: Optional[AsyncSession] = None) -> PlayerRatingSnapshot:
        """Register a player on their behalf. Reporters and the owner only."""
        caller = normalize_address(caller)
        async with self._write_context(session) as s:
            if not await self._is_authorized(s, caller):
                logger.warning(f"Rejected register_player_by_address from {caller}")
                raise UnauthorizedError(caller, "register_player_by_address")
            return await self.register_player(address, domains, initial_rating, session=s)

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def record_match(self, caller: str, player1: str, player2: str, outcome,
                           domain: str = "",
                           session: Optional[AsyncSession] = None) -> MatchSnapshot:
        """
        Record a match between two registered players and update both ratings.

        Args:
            caller: Authorized reporter or owner
            player1: First player address
            player2: Second player address
            outcome: MatchOutcome or its integer code (1, 2 or 3)
            domain: Optional domain tag the match counts toward

        Returns:
            MatchSnapshot of the appended match record

        Raises:
            UnauthorizedError, InvalidOutcomeError, SelfPlayError, NotRegisteredError
        """
        caller = normalize_address(caller)
        player1 = normalize_address(player1)
        player2 = normalize_address(player2)
        domain = (domain or "").strip()

        async with self._write_context(session) as s:
            if not await self._is_authorized(s, caller):
                logger.warning(f"Rejected record_match from {caller}")
                raise UnauthorizedError(caller, "record_match")

            outcome = MatchOutcome.coerce(outcome)
            if player1 == player2:
                raise SelfPlayError(player1)

            p1 = await self._find_player(s, player1, for_update=True)
            if not p1:
                raise NotRegisteredError(player1, 1)
            p2 = await self._find_player(s, player2, for_update=True)
            if not p2:
                raise NotRegisteredError(player2, 2)

            before1, before2 = _to_state(p1), _to_state(p2)
            after1, after2, change1, change2 = EloCalculator.apply_match(before1, before2, outcome, domain)

            self._store_state(p1, after1, domain)
            self._store_state(p2, after2, domain)

            now = self._now()
            index = await s.scalar(select(func.count(MatchRecord.id)))
            record = MatchRecord(
                player1=player1,
                player2=player2,
                outcome=outcome.value,
                domain=domain,
                player1_rating_before=before1.rating,
                player2_rating_before=before2.rating,
                player1_change=change1,
                player2_change=change2,
                reporter=caller,
                timestamp=now,
            )
            s.add(record)
            await ensure_participant(s, player1, now)
            await ensure_participant(s, player2, now)

            snapshot = _to_match_snapshot(index, record)
            self._notify(s, NotificationNames.MATCH_RECORDED, {
                "index": index,
                "player1": player1,
                "player2": player2,
                "outcome": outcome.value,
                "domain": domain,
                "player1_rating": after1.rating,
                "player2_rating": after2.rating,
                "player1_change": change1,
                "player2_change": change2,
            })

        logger.info(
            f"Match {index} recorded: {player1} {after1.rating} "
            f"({EloCalculator.format_elo_change(change1)}) vs {player2} {after2.rating} "
            f"({EloCalculator.format_elo_change(change2)}), outcome={outcome.name}"
        )
        return snapshot

    def _store_state(self, player: PlayerRating, state: RatingState, domain: str):
        player.rating = state.rating
        player.wins = state.wins
        player.losses = state.losses
        player.draws = state.draws
        player.match_count = state.match_count
        player.peak_rating = state.peak_rating
        player.current_streak = state.current_streak
        player.longest_streak = state.longest_streak

        if not domain:
            return
        for row in player.domain_ratings:
            if row.domain == domain:
                row.rating = state.domain_ratings[domain]
                return
        player.domain_ratings.append(
            PlayerDomainRating(domain=domain, rating=state.domain_ratings[domain], seeded_at_registration=False)
        )

    async def simulate_match(self, player1: str, player2: str, outcome,
                             session: Optional[AsyncSession] = None) -> Tuple[int, int]:
        """What-if rating changes for both players. Nothing is written."""
        player1 = normalize_address(player1)
        player2 = normalize_address(player2)
        outcome = MatchOutcome.coerce(outcome)

        async with self._read_context(session) as s:
            p1 = await self._find_player(s, player1)
            p2 = await self._find_player(s, player2)
            state1 = _to_state(p1) if p1 else RatingState()
            state2 = _to_state(p2) if p2 else RatingState()

        return EloCalculator.calculate_match_elo_changes(state1, state2, outcome)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _find_player(self, session: AsyncSession, address: str,
                           for_update: bool = False) -> Optional[PlayerRating]:
        query = select(PlayerRating).where(PlayerRating.address == address)
        if for_update:
            query = query.with_for_update()
        return await session.scalar(query)

    async def get_player_rating(self, address: str,
                                session: Optional[AsyncSession] = None) -> PlayerRatingSnapshot:
        """Rating state of an address. Unknown addresses return the zero value."""
        address = normalize_address(address)
        async with self._read_context(session) as s:
            player = await self._find_player(s, address)
            if not player:
                return PlayerRatingSnapshot(address=address)
            return PlayerRatingSnapshot.from_state(address, _to_state(player))

    async def is_registered(self, address: str, session: Optional[AsyncSession] = None) -> bool:
        return (await self.get_player_rating(address, session=session)).registered

    async def get_win_rate(self, address: str, session: Optional[AsyncSession] = None) -> int:
        """Win rate in basis points, 0 when no matches have been played."""
        snapshot = await self.get_player_rating(address, session=session)
        return EloCalculator.calculate_win_rate(snapshot.wins, snapshot.match_count)

    async def get_domain_rating(self, address: str, domain: str,
                                session: Optional[AsyncSession] = None) -> int:
        snapshot = await self.get_player_rating(address, session=session)
        return snapshot.domain_ratings.get(domain.strip(), 0)

    async def get_match_count(self, session: Optional[AsyncSession] = None) -> int:
        async with self._read_context(session) as s:
            return await s.scalar(select(func.count(MatchRecord.id)))

    async def get_match(self, index: int, session: Optional[AsyncSession] = None) -> Optional[MatchSnapshot]:
        """Match record at a 0-based log index, None if out of range."""
        if index < 0:
            return None
        async with self._read_context(session) as s:
            record = await s.scalar(
                select(MatchRecord).order_by(MatchRecord.id).offset(index).limit(1)
            )
            return _to_match_snapshot(index, record) if record else None

    async def get_player_count(self, session: Optional[AsyncSession] = None) -> int:
        async with self._read_context(session) as s:
            return await s.scalar(select(func.count(PlayerRating.id)))

    async def get_player_address(self, index: int,
                                 session: Optional[AsyncSession] = None) -> Optional[str]:
        """Address of the player at a 0-based registration index."""
        if index < 0:
            return None
        async with self._read_context(session) as s:
            return await s.scalar(
                select(PlayerRating.address).order_by(PlayerRating.id).offset(index).limit(1)
            )

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def replay_match_log(self, session: Optional[AsyncSession] = None) -> Dict[str, PlayerRatingSnapshot]:
        """
        Recompute every player's state from registrations and the match log.

        Uses the same calculator as record_match, so a consistent store
        replays to exactly its stored state.
        """
        async with self._read_context(session) as s:
            players = (await s.scalars(select(PlayerRating).order_by(PlayerRating.id))).all()
            states = {
                p.address: RatingState.initial(
                    p.initial_rating,
                    [d.domain for d in p.domain_ratings if d.seeded_at_registration],
                )
                for p in players
            }

            records = (await s.scalars(select(MatchRecord).order_by(MatchRecord.id))).all()
            for record in records:
                states[record.player1], states[record.player2], _, _ = EloCalculator.apply_match(
                    states[record.player1],
                    states[record.player2],
                    MatchOutcome(record.outcome),
                    record.domain,
                )

        return {
            address: PlayerRatingSnapshot.from_state(address, state)
            for address, state in states.items()
        }

    async def verify_ratings(self, session: Optional[AsyncSession] = None) -> List[RatingMismatch]:
        """List players whose stored state differs from a replay of the match log."""
        replayed = await self.replay_match_log(session=session)
        mismatches = []
        async with self._read_context(session) as s:
            players = (await s.scalars(select(PlayerRating).order_by(PlayerRating.id))).all()
            for player in players:
                stored = PlayerRatingSnapshot.from_state(player.address, _to_state(player))
                if replayed.get(player.address) != stored:
                    mismatches.append(RatingMismatch(
                        address=player.address,
                        stored=stored,
                        replayed=replayed.get(player.address),
                    ))

        if mismatches:
            logger.warning(f"Rating verification found {len(mismatches)} mismatched players")
        else:
            logger.info(f"Rating verification passed for {len(replayed)} players")
        return mismatches

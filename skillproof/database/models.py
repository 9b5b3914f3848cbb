from sqlalchemy import (
    Column, Integer, String, Boolean, Text, BigInteger,
    ForeignKey, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# All timestamps are integer seconds since the epoch, taken from the
# service clock rather than the database so replays stay deterministic.

# ============================================================================
# Rating Engine
# ============================================================================

class PlayerRating(Base):
    __tablename__ = 'player_ratings'

    id = Column(Integer, primary_key=True)
    address = Column(String(128), nullable=False, unique=True, index=True)

    rating = Column(BigInteger, nullable=False)
    initial_rating = Column(BigInteger, nullable=False)  # Kept for match log replay
    peak_rating = Column(BigInteger, nullable=False)

    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    match_count = Column(Integer, nullable=False, default=0)

    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)

    registered_at = Column(BigInteger, nullable=False)

    domain_ratings = relationship(
        "PlayerDomainRating",
        back_populates="player",
        cascade="all, delete-orphan",
        order_by="PlayerDomainRating.id",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint('rating >= 100', name='ck_player_rating_floor'),
        CheckConstraint('peak_rating >= rating', name='ck_player_peak'),
        CheckConstraint('match_count = wins + losses + draws', name='ck_player_match_count'),
    )

    def __repr__(self):
        return f"<PlayerRating(address='{self.address}', rating={self.rating}, matches={self.match_count})>"

class PlayerDomainRating(Base):
    __tablename__ = 'player_domain_ratings'

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey('player_ratings.id'), nullable=False)
    domain = Column(String(100), nullable=False)
    rating = Column(BigInteger, nullable=False)
    # Domains named at registration keep their initial rating for replay
    seeded_at_registration = Column(Boolean, nullable=False, default=False)

    player = relationship("PlayerRating", back_populates="domain_ratings")

    __table_args__ = (
        UniqueConstraint('player_id', 'domain', name='uq_player_domain'),
        CheckConstraint('rating >= 100', name='ck_domain_rating_floor'),
    )

    def __repr__(self):
        return f"<PlayerDomainRating(player_id={self.player_id}, domain='{self.domain}', rating={self.rating})>"

class MatchRecord(Base):
    """Append-only match log. Index = id order."""
    __tablename__ = 'match_records'

    id = Column(Integer, primary_key=True)
    player1 = Column(String(128), nullable=False, index=True)
    player2 = Column(String(128), nullable=False, index=True)
    outcome = Column(Integer, nullable=False)  # 1 = player1 win, 2 = player2 win, 3 = draw
    domain = Column(String(100), nullable=False, default="")

    player1_rating_before = Column(BigInteger, nullable=False)
    player2_rating_before = Column(BigInteger, nullable=False)
    player1_change = Column(BigInteger, nullable=False)
    player2_change = Column(BigInteger, nullable=False)

    reporter = Column(String(128), nullable=False)
    timestamp = Column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint('outcome IN (1, 2, 3)', name='ck_match_outcome'),
        CheckConstraint('player1 != player2', name='ck_match_no_self_play'),
    )

    def __repr__(self):
        return f"<MatchRecord(id={self.id}, {self.player1} vs {self.player2}, outcome={self.outcome})>"

class AuthorizedReporter(Base):
    __tablename__ = 'authorized_reporters'

    id = Column(Integer, primary_key=True)
    address = Column(String(128), nullable=False, unique=True)
    added_at = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<AuthorizedReporter(address='{self.address}')>"

# ============================================================================
# Credentials (external store consumed by the scoring core)
# ============================================================================

class Issuer(Base):
    __tablename__ = 'issuers'

    id = Column(Integer, primary_key=True)
    address = Column(String(128), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    registered_at = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<Issuer(address='{self.address}', name='{self.name}', active={self.active})>"

class Credential(Base):
    """
    Skill credential snapshot. An owner holds at most one valid credential;
    revoked rows stay for history and are treated as absent.
    """
    __tablename__ = 'credentials'

    id = Column(Integer, primary_key=True)
    owner = Column(String(128), nullable=False, index=True)
    issuer = Column(String(128), nullable=False)
    player_name = Column(String(200), nullable=False, default="")

    base_score = Column(BigInteger, nullable=False)
    base_percentile = Column(BigInteger, nullable=False)
    total_matches = Column(Integer, nullable=False, default=0)
    win_rate_bps = Column(Integer, nullable=False, default=0)

    issued_at = Column(BigInteger, nullable=False)
    valid = Column(Boolean, nullable=False, default=True)
    revoked_at = Column(BigInteger, nullable=True)

    domains = relationship(
        "CredentialDomain",
        back_populates="credential",
        cascade="all, delete-orphan",
        order_by="CredentialDomain.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index('ix_credentials_owner_valid', 'owner', 'valid'),
    )

    def __repr__(self):
        return f"<Credential(owner='{self.owner}', issuer='{self.issuer}', score={self.base_score}, valid={self.valid})>"

class CredentialDomain(Base):
    __tablename__ = 'credential_domains'

    id = Column(Integer, primary_key=True)
    credential_id = Column(Integer, ForeignKey('credentials.id'), nullable=False)
    position = Column(Integer, nullable=False)
    domain = Column(String(100), nullable=False)
    score = Column(BigInteger, nullable=False)
    percentile = Column(BigInteger, nullable=False)

    credential = relationship("Credential", back_populates="domains")

    __table_args__ = (UniqueConstraint('credential_id', 'position'),)

# ============================================================================
# Decay
# ============================================================================

class DecayParameters(Base):
    """Single-row table holding the global decay parameters"""
    __tablename__ = 'decay_parameters'

    id = Column(Integer, primary_key=True)
    decay_rate_per_day_bps = Column(Integer, nullable=False)
    minimum_multiplier_bps = Column(Integer, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint('decay_rate_per_day_bps >= 0 AND decay_rate_per_day_bps <= 1000',
                        name='ck_decay_rate_range'),
        CheckConstraint('minimum_multiplier_bps >= 0 AND minimum_multiplier_bps <= 10000',
                        name='ck_decay_minimum_range'),
    )

class CredentialRefresh(Base):
    """Freshness anchor of a credential, written by its issuer"""
    __tablename__ = 'credential_refreshes'

    id = Column(Integer, primary_key=True)
    credential_id = Column(Integer, ForeignKey('credentials.id'), nullable=False, unique=True)
    last_refresh = Column(BigInteger, nullable=False)

# ============================================================================
# Aggregator
# ============================================================================

class AddressLink(Base):
    """
    Link graph row. The primary's own row is the first member of its set,
    and each address belongs to at most one set.
    """
    __tablename__ = 'address_links'

    id = Column(Integer, primary_key=True)
    primary_address = Column(String(128), nullable=False, index=True)
    linked_address = Column(String(128), nullable=False, unique=True)
    linked_at = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<AddressLink(primary='{self.primary_address}', linked='{self.linked_address}')>"

# ============================================================================
# Reputation
# ============================================================================

class Participant(Base):
    """Ordered participant set. Insertion order = id order."""
    __tablename__ = 'participants'

    id = Column(Integer, primary_key=True)
    address = Column(String(128), nullable=False, unique=True)
    first_seen_at = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<Participant(id={self.id}, address='{self.address}')>"

class ReputationAccount(Base):
    __tablename__ = 'reputation_accounts'

    id = Column(Integer, primary_key=True)
    address = Column(String(128), nullable=False, unique=True)
    reputation = Column(BigInteger, nullable=False, default=0)  # Signed, unbounded
    updated_at = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<ReputationAccount(address='{self.address}', reputation={self.reputation})>"

class ReputationLedger(Base):
    """
    Append-only reputation history.

    Each row records the change amount, the outcome kind and the reputation
    after the change, computed under SELECT FOR UPDATE on the account.
    """
    __tablename__ = 'reputation_ledger'

    id = Column(Integer, primary_key=True)
    address = Column(String(128), nullable=False, index=True)
    kind = Column(String(50), nullable=False)        # e.g. "CORRECT_PREDICTION", "BOUNTY_WON"
    change_amount = Column(BigInteger, nullable=False)
    reputation_after = Column(BigInteger, nullable=False)
    reference = Column(String(255), nullable=True)   # Market or bounty identifier
    timestamp = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<ReputationLedger(address='{self.address}', amount={self.change_amount}, after={self.reputation_after}, kind='{self.kind}')>"

# ============================================================================
# Administration
# ============================================================================

class AuditLog(Base):
    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True)
    actor = Column(String(128), nullable=False)
    action = Column(String(100), nullable=False)
    target = Column(String(128), nullable=True)
    details = Column(Text, nullable=True)  # JSON payload
    timestamp = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<AuditLog(actor='{self.actor}', action='{self.action}', target='{self.target}')>"

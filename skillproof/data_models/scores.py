"""
Score data models.

Immutable data transfer objects for credentials, aggregate scores,
reputation history and gate checks.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class DomainScore:
    domain: str
    score: int
    percentile: int


@dataclass(frozen=True)
class CredentialSnapshot:
    """Read-only view of a credential as consumed by the scoring core."""
    owner: str
    issuer: str
    player_name: str
    base_score: int
    base_percentile: int
    domains: Tuple[DomainScore, ...]
    total_matches: int
    win_rate_bps: int
    issued_at: int
    valid: bool

    @property
    def domain_names(self) -> List[str]:
        return [d.domain for d in self.domains]


@dataclass(frozen=True)
class AggregateScore:
    """Composite score over the valid credentials of a linked address set."""
    composite_score: int = 0
    composite_percentile: int = 0
    total_matches: int = 0
    issuer_count: int = 0
    domain_count: int = 0
    cross_domain_bonus: int = 0
    overall_score: int = 0


@dataclass(frozen=True)
class ReputationEntry:
    """Single reputation history row."""
    address: str
    kind: str
    change_amount: int
    reputation_after: int
    reference: Optional[str]
    timestamp: int


@dataclass(frozen=True)
class GateConfig:
    """Requirements checked by the skill gate. Unset fields are not checked."""
    min_score: Optional[int] = None
    min_percentile: Optional[int] = None
    required_domains: Tuple[str, ...] = ()
    use_decayed_score: bool = False
    use_effective_score: bool = False


@dataclass(frozen=True)
class GateResult:
    passed: bool
    reason: Optional[str] = None
    score: int = 0
    percentile: int = 0
    domains: List[str] = field(default_factory=list)

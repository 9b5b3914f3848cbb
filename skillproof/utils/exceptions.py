"""
Custom exceptions for the scoring core with caller-facing error messages.

Every exception is raised before any state is written, so a caller can
correct the request and resubmit it.
"""

class SkillProofException(Exception):
    """Base exception for scoring-core errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class InvalidAddressError(SkillProofException):
    """Raised when an address is empty or not a string."""
    def __init__(self, address):
        super().__init__(
            f"Invalid address: {address!r}",
            "Address must be a non-empty string"
        )

class UnauthorizedError(SkillProofException):
    """Raised when the caller may not perform an operation."""
    def __init__(self, caller: str, operation: str):
        super().__init__(
            f"Caller {caller} not authorized for {operation}",
            "Unauthorized"
        )

# ----------------------------------------------------------------------------
# Rating Engine
# ----------------------------------------------------------------------------

class RatingEngineError(SkillProofException):
    """Base exception for rating engine errors."""

class AlreadyRegisteredError(RatingEngineError):
    """Raised when registering an address that is already registered."""
    def __init__(self, address: str):
        super().__init__(
            f"Player {address} already registered",
            "Already registered"
        )

class NotRegisteredError(RatingEngineError):
    """Raised when a match names an unregistered player."""
    def __init__(self, address: str, position: int = None):
        label = f"Player {position}" if position else "Player"
        super().__init__(
            f"{label} ({address}) not registered",
            f"{label} not registered"
        )
        self.address = address
        self.position = position

class SelfPlayError(RatingEngineError):
    """Raised when both sides of a match are the same address."""
    def __init__(self, address: str):
        super().__init__(
            f"Player {address} cannot play against itself",
            "Cannot play self"
        )

class InvalidOutcomeError(RatingEngineError):
    """Raised when a match outcome is outside the three-valued set."""
    def __init__(self, outcome):
        super().__init__(
            f"Invalid outcome {outcome!r}",
            "Invalid outcome"
        )

class InvalidRatingError(RatingEngineError):
    """Raised when an initial rating is below the rating floor."""
    def __init__(self, rating, floor: int):
        super().__init__(
            f"Initial rating {rating!r} is below the floor of {floor}",
            f"Rating must be at least {floor}"
        )

# ----------------------------------------------------------------------------
# Credentials and Decay
# ----------------------------------------------------------------------------

class CredentialError(SkillProofException):
    """Base exception for credential and decay errors."""

class NoCredentialError(CredentialError):
    """Raised when an address has no valid credential."""
    def __init__(self, address: str):
        super().__init__(
            f"No valid credential for {address}",
            "No credential"
        )

class NotIssuerError(CredentialError):
    """Raised when a caller is not the credential's original issuer."""
    def __init__(self, caller: str, address: str):
        super().__init__(
            f"{caller} is not the issuer of the credential held by {address}",
            "Only issuer can refresh"
        )

class NotActiveIssuerError(CredentialError):
    """Raised when an unregistered or revoked issuer tries to mint."""
    def __init__(self, caller: str):
        super().__init__(
            f"{caller} is not an active issuer",
            "Not active issuer"
        )

class CredentialExistsError(CredentialError):
    """Raised when minting over an existing valid credential."""
    def __init__(self, address: str):
        super().__init__(
            f"Credential already exists for {address}",
            "Credential already exists"
        )

class ArrayLengthMismatchError(CredentialError):
    """Raised when per-domain arrays do not line up with the domain list."""
    def __init__(self, domains: int, scores: int, percentiles: int):
        super().__init__(
            f"Domain arrays mismatch: {domains} domains, {scores} scores, {percentiles} percentiles",
            "Array length mismatch"
        )

class DecayParameterError(CredentialError):
    """Base exception for rejected decay parameter updates."""

class RateTooHighError(DecayParameterError):
    """Raised when the daily decay rate is outside [0, max]."""
    def __init__(self, rate, maximum: int):
        super().__init__(
            f"Decay rate {rate!r} bps/day outside [0, {maximum}]",
            "Decay rate too high"
        )

class InvalidMinimumError(DecayParameterError):
    """Raised when the minimum multiplier is outside [0, 10000]."""
    def __init__(self, minimum):
        super().__init__(
            f"Minimum multiplier {minimum!r} bps outside [0, 10000]",
            "Invalid minimum"
        )

# ----------------------------------------------------------------------------
# Aggregator
# ----------------------------------------------------------------------------

class AggregatorError(SkillProofException):
    """Base exception for address-linking errors."""

class AlreadyLinkedError(AggregatorError):
    """Raised when an address already belongs to a linked set."""
    def __init__(self, address: str, primary: str):
        super().__init__(
            f"{address} already linked to {primary}",
            "Already linked"
        )

class CannotUnlinkPrimaryError(AggregatorError):
    """Raised when unlinking a primary from its own set."""
    def __init__(self, primary: str):
        super().__init__(
            f"Cannot unlink primary {primary} from its own set",
            "Cannot unlink primary"
        )

class NotLinkedError(AggregatorError):
    """Raised when unlinking an address that is not in the primary's set."""
    def __init__(self, primary: str, address: str):
        super().__init__(
            f"{address} is not linked to {primary}",
            "Not linked"
        )

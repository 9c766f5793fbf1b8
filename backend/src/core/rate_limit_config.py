"""
Rate limiting configuration and types.

This module contains the policy configuration for rate limiting - the "what" limits
to apply, separate from the "how" (enforcement logic in rate_limiter.py).

To adjust rate limits, modify the named configs below.
"""
from dataclasses import dataclass

from services.exceptions import ForbiddenError


@dataclass(frozen=True)
class RateLimitConfig:
    """
    Fixed window policy for one limiter.

    ``points`` consumptions are allowed per ``duration`` seconds. Once exhausted,
    the key is blocked for ``block_duration`` seconds (0 means it simply waits for
    the window to reset).
    """

    points: int
    duration: int
    block_duration: int = 0
    key_prefix: str = "rl"

    def __post_init__(self) -> None:
        if self.points < 1:
            raise ValueError("points must be >= 1")
        if self.duration < 1:
            raise ValueError("duration must be >= 1 second")
        if self.block_duration < 0:
            raise ValueError("block_duration must be >= 0")


@dataclass
class RateLimitResult:
    """Result of a rate limit check with all info needed for headers."""

    allowed: bool
    limit: int  # Max requests in current window
    remaining: int  # Requests remaining in current window
    reset: int  # Unix timestamp when window (or block) ends
    retry_after: int  # Seconds until retry allowed (0 if allowed)


class RateLimitExceededError(ForbiddenError):
    """Raised when rate limit is exceeded."""

    default_message = "Too many requests, please try again later"

    def __init__(self, result: RateLimitResult) -> None:
        self.result = result
        super().__init__()


# ---------------------------------------------------------------------------
# Rate Limit Policy Configuration
# ---------------------------------------------------------------------------

# Applied to every request, keyed by client IP.
DEFAULT = RateLimitConfig(points=100, duration=60, block_duration=60)

# Credential endpoints (sign-up, sign-in), keyed by client IP and route.
AUTH = RateLimitConfig(points=5, duration=60, block_duration=300, key_prefix="rl_auth")

# Unauthenticated read endpoints.
PUBLIC = RateLimitConfig(points=100, duration=60, block_duration=60, key_prefix="rl_public")

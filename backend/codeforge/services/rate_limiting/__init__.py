"""
Rate limiting and retry utilities.
"""

from codeforge.services.rate_limiting.limiter import (
    DEFAULT_ACTION_LIMITS,
    ActionLimit,
    RateLimiter,
    RateLimiterStats,
    RateLimitResult,
    RateLimitStatus,
)
from codeforge.services.rate_limiting.retry import (
    compute_backoff_delay,
    is_transient_error,
    retry_with_backoff,
    with_backoff,
)

__all__ = [
    "DEFAULT_ACTION_LIMITS",
    "ActionLimit",
    "RateLimiter",
    "RateLimiterStats",
    "RateLimitResult",
    "RateLimitStatus",
    "compute_backoff_delay",
    "is_transient_error",
    "retry_with_backoff",
    "with_backoff",
]

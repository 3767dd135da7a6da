"""
Per-user, per-action rate limiter for room chat events.

Counts requests in fixed windows and blocks a user for a cooldown period
once the window quota is exceeded. State is process-local and advisory:
it is lost on restart and is not shared between instances.

Usage:
    limiter = RateLimiter()
    await limiter.start()          # periodic cleanup
    result = limiter.check_rate_limit(user_id, "messages")
    if not result.allowed:
        ...                        # tell the client to retry after result.retry_after
    limiter.destroy()
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Share of max_requests above which an approaching-limit record is logged
APPROACHING_LIMIT_RATIO = 0.8

# Records stay this many windows after their last reset before cleanup drops them
STALE_WINDOWS = 2

INVALID_PARAMETERS = "Invalid parameters"


@dataclass(frozen=True)
class ActionLimit:
    """Quota for one action kind."""

    window_ms: int
    max_requests: int
    block_duration_ms: int

    def to_dict(self) -> dict:
        return {
            "windowMs": self.window_ms,
            "maxRequests": self.max_requests,
            "blockDurationMs": self.block_duration_ms,
        }


DEFAULT_ACTION_LIMITS: dict[str, ActionLimit] = {
    "messages": ActionLimit(window_ms=60_000, max_requests=30, block_duration_ms=300_000),
    "roomJoins": ActionLimit(window_ms=60_000, max_requests=10, block_duration_ms=60_000),
    "messageEdits": ActionLimit(window_ms=60_000, max_requests=15, block_duration_ms=120_000),
}


@dataclass
class ActionWindow:
    count: int
    window_start: int
    blocked_until: int = 0


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after: Optional[int] = None  # seconds
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {"allowed": self.allowed}
        if self.retry_after is not None:
            data["retryAfter"] = self.retry_after
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass
class RateLimitStatus:
    count: int
    limit: int
    blocked: bool
    blocked_until: Optional[int] = None
    window_start: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "limit": self.limit,
            "blocked": self.blocked,
            "blockedUntil": self.blocked_until,
            "windowStart": self.window_start,
        }


@dataclass
class RateLimiterStats:
    total_users: int
    total_actions: int
    blocked_users: int
    limits: dict[str, ActionLimit]

    def to_dict(self) -> dict:
        return {
            "totalUsers": self.total_users,
            "totalActions": self.total_actions,
            "blockedUsers": self.blocked_users,
            "limits": {action: limit.to_dict() for action, limit in self.limits.items()},
        }


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """
    Fixed-window rate limiter keyed by (user_id, action).

    Each check is synchronous and has no suspension point, so concurrent
    coroutines cannot interleave between reading and updating a record.
    """

    def __init__(
        self,
        limits: Optional[dict[str, ActionLimit]] = None,
        cleanup_interval_sec: float = 300,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            limits: Quota per action name (default DEFAULT_ACTION_LIMITS)
            cleanup_interval_sec: Seconds between background cleanup passes
            clock: Returns the current time in milliseconds
        """
        self.limits = dict(limits) if limits is not None else dict(DEFAULT_ACTION_LIMITS)
        self.cleanup_interval_sec = cleanup_interval_sec
        self._clock = clock or _wall_clock_ms
        # user_id -> action -> ActionWindow
        self._user_limits: dict[str, dict[str, ActionWindow]] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

    def check_rate_limit(self, user_id: str, action: str) -> RateLimitResult:
        """Count one request for (user_id, action) and decide whether it is allowed."""
        if not user_id or not action or action not in self.limits:
            return RateLimitResult(allowed=False, reason=INVALID_PARAMETERS)

        now = self._clock()
        limit = self.limits[action]

        user_actions = self._user_limits.setdefault(user_id, {})
        window = user_actions.get(action)
        if window is None:
            window = ActionWindow(count=0, window_start=now)
            user_actions[action] = window

        if window.blocked_until > now:
            retry_after = math.ceil((window.blocked_until - now) / 1000)
            logger.debug(
                "Rate limit block active for user %s, action %s. Retry after %ds",
                user_id,
                action,
                retry_after,
            )
            return RateLimitResult(
                allowed=False,
                retry_after=retry_after,
                reason=f"Blocked due to rate limit violation. Try again in {retry_after} seconds.",
            )

        if now - window.window_start > limit.window_ms:
            window.count = 0
            window.window_start = now

        if window.count >= limit.max_requests:
            window.blocked_until = now + limit.block_duration_ms
            retry_after = math.ceil(limit.block_duration_ms / 1000)
            logger.warning(
                "Rate limit exceeded for user %s, action %s. Blocked for %ds",
                user_id,
                action,
                retry_after,
            )
            return RateLimitResult(
                allowed=False,
                retry_after=retry_after,
                reason=f"Rate limit exceeded. Blocked for {retry_after} seconds.",
            )

        window.count += 1

        if window.count > limit.max_requests * APPROACHING_LIMIT_RATIO:
            logger.info(
                "User %s approaching rate limit for %s: %d/%d",
                user_id,
                action,
                window.count,
                limit.max_requests,
            )

        return RateLimitResult(allowed=True)

    def get_rate_limit_status(self, user_id: str, action: str) -> RateLimitStatus:
        """Read-only snapshot; never creates a record."""
        limit = self.limits.get(action)
        max_requests = limit.max_requests if limit else 0

        window = self._user_limits.get(user_id, {}).get(action)
        if window is None:
            return RateLimitStatus(count=0, limit=max_requests, blocked=False)

        blocked = window.blocked_until > self._clock()
        return RateLimitStatus(
            count=window.count,
            limit=max_requests,
            blocked=blocked,
            blocked_until=window.blocked_until if blocked else None,
            window_start=window.window_start,
        )

    def reset_user_limits(self, user_id: str, action: Optional[str] = None) -> bool:
        """
        Administrative override.

        Drops the record for one action, or every record of the user when
        action is omitted. Returns True if anything was deleted.
        """
        user_actions = self._user_limits.get(user_id)
        if user_actions is None:
            return False

        if action is None:
            del self._user_limits[user_id]
            logger.info("Reset all rate limits for user %s", user_id)
            return True

        if action not in user_actions:
            return False

        del user_actions[action]
        if not user_actions:
            del self._user_limits[user_id]
        logger.info("Reset rate limits for user %s, action %s", user_id, action)
        return True

    def cleanup(self) -> tuple[int, int]:
        """
        Drop records that are both unblocked and stale.

        Returns:
            (removed_actions, removed_users)
        """
        now = self._clock()
        removed_actions = 0
        removed_users = 0

        for user_id in list(self._user_limits):
            user_actions = self._user_limits[user_id]
            for action in list(user_actions):
                limit = self.limits.get(action)
                window = user_actions[action]
                if (
                    limit
                    and window.blocked_until < now
                    and now - window.window_start > limit.window_ms * STALE_WINDOWS
                ):
                    del user_actions[action]
                    removed_actions += 1

            if not user_actions:
                del self._user_limits[user_id]
                removed_users += 1

        if removed_actions or removed_users:
            logger.info(
                "Rate limit cleanup: removed %d expired actions for %d users",
                removed_actions,
                removed_users,
            )
        return removed_actions, removed_users

    def get_stats(self) -> RateLimiterStats:
        now = self._clock()
        total_actions = 0
        blocked_users = 0

        for user_actions in self._user_limits.values():
            total_actions += len(user_actions)
            if any(w.blocked_until > now for w in user_actions.values()):
                blocked_users += 1

        return RateLimiterStats(
            total_users=len(self._user_limits),
            total_actions=total_actions,
            blocked_users=blocked_users,
            limits=dict(self.limits),
        )

    @property
    def is_running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    async def start(self):
        """Start the periodic cleanup task."""
        if self.is_running:
            logger.warning("RateLimiter cleanup already running")
            return

        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            "RateLimiter cleanup started with %ss interval",
            self.cleanup_interval_sec,
        )

    async def stop(self):
        """Stop the periodic cleanup task and wait for it to finish."""
        task = self._cleanup_task
        if task is None:
            return

        self._cleanup_task = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info("RateLimiter cleanup stopped")

    def destroy(self):
        """Cancel the cleanup task and forget all state."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None
        self._user_limits.clear()
        logger.info("Rate limiter destroyed")

    async def _cleanup_loop(self):
        while True:
            await asyncio.sleep(self.cleanup_interval_sec)
            try:
                self.cleanup()
            except Exception as e:
                logger.error("RateLimiter cleanup failed: %s", e, exc_info=True)

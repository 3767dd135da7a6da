"""
Base classes and errors for coding-platform API clients.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from codeforge.core.config import settings
from codeforge.services.rate_limiting import is_transient_error, retry_with_backoff

logger = logging.getLogger(__name__)

USER_AGENT = "CodeForge/1.0.0"


class PlatformError(Exception):
    """A platform API call failed."""

    def __init__(
        self,
        message: str,
        platform: str,
        code: str = "PLATFORM_ERROR",
        transient: bool = False,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.platform = platform
        self.code = code
        self.transient = transient
        self.retry_after = retry_after


class PlatformUserNotFound(PlatformError):
    def __init__(self, platform: str, username: str):
        super().__init__(
            f'{platform} username "{username}" not found or invalid.',
            platform,
            code="USER_NOT_FOUND",
        )
        self.username = username


class PlatformRateLimited(PlatformError):
    """The platform refused the call until retry_after seconds have passed."""

    def __init__(self, platform: str, retry_after: Optional[int] = None):
        super().__init__(
            f"{platform} API rate limit exceeded. Please try again later.",
            platform,
            code="RATE_LIMIT_EXCEEDED",
            retry_after=retry_after,
        )


@dataclass
class PlatformResponse:
    status: int
    headers: dict[str, str]  # lower-cased names
    data: Any


class BasePlatformClient(ABC):
    """Abstract base for all platform clients."""

    platform: str = ""

    def __init__(
        self,
        timeout_sec: Optional[float] = None,
        retry_options: Optional[dict] = None,
    ):
        """
        Args:
            timeout_sec: Total timeout per HTTP request
            retry_options: Overrides for retry_with_backoff keyword arguments
        """
        self.timeout_sec = timeout_sec or settings.PLATFORM_REQUEST_TIMEOUT_SEC
        self.retry_options = {
            "max_retries": settings.RETRY_MAX_RETRIES,
            "base_delay": settings.RETRY_BASE_DELAY_SEC,
            "max_delay": settings.RETRY_MAX_DELAY_SEC,
            "factor": settings.RETRY_FACTOR,
            "retry_condition": is_transient_error,
        }
        if retry_options:
            self.retry_options.update(retry_options)

    @abstractmethod
    async def _fetch_stats_once(self, username: str) -> Any:
        """Single attempt at fetching stats. Raise PlatformError on failure."""
        ...

    async def fetch_stats(self, username: str) -> Any:
        """Fetch stats for a username, retrying transient failures."""

        async def fetch():
            return await self._fetch_stats_once(username)

        fetch.__name__ = f"{self.platform}.fetch_stats"

        try:
            return await retry_with_backoff(fetch, **self.retry_options)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise PlatformError(
                f"{self.platform} API is unreachable",
                self.platform,
                code="NETWORK_ERROR",
                transient=True,
            ) from exc

    async def validate_username(self, username: str) -> bool:
        """
        True if the username resolves on the platform.

        Only a definite "not found" answer returns False; outages and rate
        limits propagate so a username is never invalidated by a network issue.
        """
        try:
            await self.fetch_stats(username)
        except PlatformUserNotFound:
            return False
        return True

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": USER_AGENT, "Content-Type": "application/json"}

    async def _request(self, method: str, url: str, **kwargs) -> PlatformResponse:
        timeout = aiohttp.ClientTimeout(total=self.timeout_sec)
        async with aiohttp.ClientSession(headers=self._headers(), timeout=timeout) as session:
            async with session.request(method, url, **kwargs) as resp:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    # Error pages from proxies are HTML
                    data = None
                headers = {k.lower(): v for k, v in resp.headers.items()}
                return PlatformResponse(status=resp.status, headers=headers, data=data)

    def _raise_for_status(self, response: PlatformResponse, username: str) -> None:
        status = response.status
        if status < 400:
            return

        if status == 404:
            raise PlatformUserNotFound(self.platform, username)

        if status == 429:
            raise PlatformRateLimited(
                self.platform, retry_after=parse_int(response.headers.get("retry-after"))
            )

        if status >= 500:
            logger.warning("%s API returned %d for %s", self.platform, status, username)
            raise PlatformError(
                f"{self.platform} service unavailable (HTTP {status})",
                self.platform,
                code="SERVICE_UNAVAILABLE",
                transient=True,
            )

        raise PlatformError(
            f"{self.platform} API error (HTTP {status})",
            self.platform,
            code="API_ERROR",
        )


def parse_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def seconds_until(epoch_sec: Optional[int]) -> Optional[int]:
    """Seconds from now until a unix timestamp, never negative."""
    if epoch_sec is None:
        return None
    return max(0, epoch_sec - int(time.time()))

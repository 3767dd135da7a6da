"""
GitHub REST API client.
"""

import logging
import re
from dataclasses import dataclass

from codeforge.core.config import settings
from codeforge.services.platforms.base import (
    BasePlatformClient,
    PlatformRateLimited,
    PlatformUserNotFound,
    parse_int,
    seconds_until,
)

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# Alphanumerics and hyphens, no leading hyphen, at most 39 characters
GITHUB_USERNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")


@dataclass
class GitHubStats:
    username: str
    public_repos: int
    followers: int
    following: int


class GitHubClient(BasePlatformClient):
    platform = "github"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github+json"
        if settings.GITHUB_TOKEN:
            headers["Authorization"] = f"token {settings.GITHUB_TOKEN}"
        return headers

    async def _fetch_stats_once(self, username: str) -> GitHubStats:
        if not GITHUB_USERNAME_RE.fullmatch(username):
            raise PlatformUserNotFound(self.platform, username)

        response = await self._request("GET", f"{GITHUB_API_URL}/users/{username}")

        # Primary rate limit exhaustion is a 403, not a 429
        if response.status == 403 and response.headers.get("x-ratelimit-remaining") == "0":
            retry_after = seconds_until(parse_int(response.headers.get("x-ratelimit-reset")))
            logger.warning("GitHub rate limit exhausted, resets in %ss", retry_after)
            raise PlatformRateLimited(self.platform, retry_after=retry_after)

        self._raise_for_status(response, username)

        data = response.data or {}
        return GitHubStats(
            username=data.get("login", username),
            public_repos=data.get("public_repos") or 0,
            followers=data.get("followers") or 0,
            following=data.get("following") or 0,
        )

"""
Clients for the coding platforms users connect to their profile.
"""

from typing import Optional

from codeforge.services.platforms.base import (
    BasePlatformClient,
    PlatformError,
    PlatformRateLimited,
    PlatformUserNotFound,
)
from codeforge.services.platforms.codeforces import CodeforcesClient, CodeforcesStats
from codeforge.services.platforms.github import GitHubClient, GitHubStats
from codeforge.services.platforms.leetcode import LeetCodeClient, LeetCodeStats

PLATFORM_CLIENTS: dict[str, type[BasePlatformClient]] = {
    "codeforces": CodeforcesClient,
    "github": GitHubClient,
    "leetcode": LeetCodeClient,
}


def get_platform_client(name: str, **kwargs) -> Optional[BasePlatformClient]:
    """Build a client for a platform name, or None if the platform is unknown."""
    client_cls = PLATFORM_CLIENTS.get(name.lower())
    return client_cls(**kwargs) if client_cls else None


__all__ = [
    "BasePlatformClient",
    "CodeforcesClient",
    "CodeforcesStats",
    "GitHubClient",
    "GitHubStats",
    "LeetCodeClient",
    "LeetCodeStats",
    "PLATFORM_CLIENTS",
    "PlatformError",
    "PlatformRateLimited",
    "PlatformUserNotFound",
    "get_platform_client",
]

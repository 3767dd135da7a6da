"""
Codeforces public API client.
"""

import logging
from dataclasses import dataclass

from codeforge.services.platforms.base import (
    BasePlatformClient,
    PlatformError,
    PlatformUserNotFound,
)

logger = logging.getLogger(__name__)

CODEFORCES_API_URL = "https://codeforces.com/api"


@dataclass
class CodeforcesStats:
    username: str
    current_rating: int
    max_rating: int
    rank: str
    max_rank: str
    contribution: int
    friend_of_count: int


class CodeforcesClient(BasePlatformClient):
    platform = "codeforces"

    async def _fetch_stats_once(self, username: str) -> CodeforcesStats:
        response = await self._request(
            "GET", f"{CODEFORCES_API_URL}/user.info", params={"handles": username}
        )
        data = response.data if isinstance(response.data, dict) else {}

        # Unknown handles come back as HTTP 400 with status FAILED
        if data.get("status") == "FAILED":
            comment = data.get("comment", "")
            if "not found" in comment:
                raise PlatformUserNotFound(self.platform, username)
            raise PlatformError(f"Codeforces API error: {comment}", self.platform, code="API_ERROR")

        self._raise_for_status(response, username)

        results = data.get("result") or []
        if data.get("status") != "OK" or not results:
            raise PlatformUserNotFound(self.platform, username)

        user = results[0]
        stats = CodeforcesStats(
            username=user.get("handle", username),
            current_rating=user.get("rating") or 0,
            max_rating=user.get("maxRating") or 0,
            rank=user.get("rank") or "Unrated",
            max_rank=user.get("maxRank") or "Unrated",
            contribution=user.get("contribution") or 0,
            friend_of_count=user.get("friendOfCount") or 0,
        )
        logger.debug("Codeforces: %s rating %d", stats.username, stats.current_rating)
        return stats

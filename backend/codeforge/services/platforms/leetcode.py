"""
LeetCode GraphQL client.

LeetCode has no public REST API; profile data comes from the same GraphQL
endpoint the website uses.
"""

import logging
import math
from dataclasses import dataclass

from codeforge.services.platforms.base import (
    BasePlatformClient,
    PlatformError,
    PlatformUserNotFound,
)

logger = logging.getLogger(__name__)

LEETCODE_GRAPHQL_URL = "https://leetcode.com/graphql"

USER_PROFILE_QUERY = """
query getUserProfile($username: String!) {
  matchedUser(username: $username) {
    submitStats: submitStatsGlobal {
      acSubmissionNum {
        difficulty
        count
      }
    }
  }
  userContestRanking(username: $username) {
    attendedContestsCount
    rating
  }
}
"""


@dataclass
class LeetCodeStats:
    username: str
    total_solved: int
    easy_solved: int
    medium_solved: int
    hard_solved: int
    contest_rating: int
    contests_attended: int


class LeetCodeClient(BasePlatformClient):
    platform = "leetcode"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        # LeetCode rejects obvious non-browser agents
        headers["User-Agent"] = (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
        )
        return headers

    async def _fetch_stats_once(self, username: str) -> LeetCodeStats:
        response = await self._request(
            "POST",
            LEETCODE_GRAPHQL_URL,
            json={"query": USER_PROFILE_QUERY, "variables": {"username": username}},
        )
        self._raise_for_status(response, username)

        body = response.data if isinstance(response.data, dict) else {}
        errors = body.get("errors")
        if errors:
            if any("does not exist" in (err.get("message") or "") for err in errors):
                raise PlatformUserNotFound(self.platform, username)
            logger.error("LeetCode GraphQL error for %s: %s", username, errors)
            raise PlatformError(
                f"GraphQL error fetching LeetCode data for {username}.",
                self.platform,
                code="GRAPHQL_ERROR",
            )

        data = body.get("data") or {}
        matched_user = data.get("matchedUser")
        if not matched_user:
            raise PlatformUserNotFound(self.platform, username)

        solved = {"easy": 0, "medium": 0, "hard": 0}
        submit_stats = matched_user.get("submitStats") or {}
        for entry in submit_stats.get("acSubmissionNum") or []:
            difficulty = (entry.get("difficulty") or "").lower()
            if difficulty in solved:
                solved[difficulty] = entry.get("count") or 0

        ranking = data.get("userContestRanking") or {}

        return LeetCodeStats(
            username=username,
            total_solved=sum(solved.values()),
            easy_solved=solved["easy"],
            medium_solved=solved["medium"],
            hard_solved=solved["hard"],
            contest_rating=math.floor(ranking.get("rating") or 0),
            contests_attended=ranking.get("attendedContestsCount") or 0,
        )

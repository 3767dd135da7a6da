import asyncio
import time
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from codeforge.services.platforms import (
    CodeforcesClient,
    GitHubClient,
    LeetCodeClient,
    PlatformError,
    PlatformRateLimited,
    PlatformUserNotFound,
    get_platform_client,
)
from codeforge.services.platforms.base import PlatformResponse


async def no_sleep(delay):
    pass


def make_client(cls):
    return cls(retry_options={"sleep": no_sleep})


def response(status=200, data=None, headers=None):
    return PlatformResponse(status=status, headers=headers or {}, data=data)


def test_codeforces_stats_parsed():
    client = make_client(CodeforcesClient)
    payload = {
        "status": "OK",
        "result": [
            {
                "handle": "tourist",
                "rating": 3800,
                "maxRating": 4000,
                "rank": "legendary grandmaster",
                "maxRank": "legendary grandmaster",
                "contribution": 100,
                "friendOfCount": 5000,
            }
        ],
    }

    with patch.object(client, "_request", new=AsyncMock(return_value=response(data=payload))) as req:
        stats = asyncio.run(client.fetch_stats("tourist"))

    assert stats.username == "tourist"
    assert stats.current_rating == 3800
    assert stats.max_rank == "legendary grandmaster"
    assert req.await_args.kwargs["params"] == {"handles": "tourist"}


def test_codeforces_unknown_handle_is_invalid():
    client = make_client(CodeforcesClient)
    payload = {"status": "FAILED", "comment": "handles: User with handle nobody_xyz not found"}

    with patch.object(client, "_request", new=AsyncMock(return_value=response(400, payload))) as req:
        assert asyncio.run(client.validate_username("nobody_xyz")) is False

    assert req.await_count == 1


def test_leetcode_retries_server_errors():
    client = make_client(LeetCodeClient)
    payload = {
        "data": {
            "matchedUser": {
                "submitStats": {
                    "acSubmissionNum": [
                        {"difficulty": "All", "count": 60},
                        {"difficulty": "Easy", "count": 30},
                        {"difficulty": "Medium", "count": 20},
                        {"difficulty": "Hard", "count": 10},
                    ]
                }
            },
            "userContestRanking": {"attendedContestsCount": 4, "rating": 1650.7},
        }
    }
    req = AsyncMock(side_effect=[response(502), response(data=payload)])

    with patch.object(client, "_request", new=req):
        stats = asyncio.run(client.fetch_stats("alice"))

    assert req.await_count == 2
    assert stats.total_solved == 60
    assert stats.hard_solved == 10
    assert stats.contest_rating == 1650
    assert stats.contests_attended == 4


def test_leetcode_missing_user():
    client = make_client(LeetCodeClient)
    payload = {"data": {"matchedUser": None, "userContestRanking": None}}

    with patch.object(client, "_request", new=AsyncMock(return_value=response(data=payload))):
        with pytest.raises(PlatformUserNotFound):
            asyncio.run(client.fetch_stats("ghost"))


def test_leetcode_graphql_error_not_retried():
    client = make_client(LeetCodeClient)
    payload = {"errors": [{"message": "Internal error"}]}
    req = AsyncMock(return_value=response(data=payload))

    with patch.object(client, "_request", new=req):
        with pytest.raises(PlatformError) as excinfo:
            asyncio.run(client.fetch_stats("alice"))

    assert excinfo.value.code == "GRAPHQL_ERROR"
    assert req.await_count == 1


def test_github_rate_limit_is_not_retried():
    client = make_client(GitHubClient)
    reset_at = int(time.time()) + 120
    headers = {"x-ratelimit-remaining": "0", "x-ratelimit-reset": str(reset_at)}
    req = AsyncMock(return_value=response(403, {"message": "API rate limit exceeded"}, headers))

    with patch.object(client, "_request", new=req):
        with pytest.raises(PlatformRateLimited) as excinfo:
            asyncio.run(client.fetch_stats("octocat"))

    assert req.await_count == 1
    assert 100 <= excinfo.value.retry_after <= 120


def test_github_stats_and_not_found():
    client = make_client(GitHubClient)
    payload = {"login": "octocat", "public_repos": 8, "followers": 100, "following": 9}

    with patch.object(client, "_request", new=AsyncMock(return_value=response(data=payload))):
        stats = asyncio.run(client.fetch_stats("octocat"))
    assert (stats.public_repos, stats.followers, stats.following) == (8, 100, 9)

    with patch.object(client, "_request", new=AsyncMock(return_value=response(404, {}))):
        assert asyncio.run(client.validate_username("missing")) is False


def test_network_errors_retried_then_wrapped():
    client = make_client(GitHubClient)
    req = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))

    with patch.object(client, "_request", new=req):
        with pytest.raises(PlatformError) as excinfo:
            asyncio.run(client.fetch_stats("octocat"))

    assert excinfo.value.code == "NETWORK_ERROR"
    assert isinstance(excinfo.value.__cause__, aiohttp.ClientConnectionError)
    assert req.await_count == 3


def test_validate_propagates_outages():
    client = make_client(CodeforcesClient)

    with patch.object(client, "_request", new=AsyncMock(return_value=response(503))):
        with pytest.raises(PlatformError) as excinfo:
            asyncio.run(client.validate_username("tourist"))

    assert excinfo.value.code == "SERVICE_UNAVAILABLE"


def test_registry():
    assert isinstance(get_platform_client("LeetCode"), LeetCodeClient)
    assert isinstance(get_platform_client("github"), GitHubClient)
    assert get_platform_client("hackerrank") is None


@pytest.mark.parametrize("username", ["..", "../orgs/x", "a?b", "a#b", "-octocat", "a" * 40, ""])
def test_github_rejects_malformed_usernames_without_request(username):
    client = make_client(GitHubClient)
    req = AsyncMock(return_value=response(data={"current_user_url": "https://api.github.com/user"}))

    with patch.object(client, "_request", new=req):
        assert asyncio.run(client.validate_username(username)) is False

    assert req.await_count == 0


def test_github_requests_user_path():
    client = make_client(GitHubClient)
    payload = {"login": "octo-cat", "public_repos": 1, "followers": 0, "following": 0}
    req = AsyncMock(return_value=response(data=payload))

    with patch.object(client, "_request", new=req):
        assert asyncio.run(client.validate_username("octo-cat")) is True

    assert req.await_args.args == ("GET", "https://api.github.com/users/octo-cat")

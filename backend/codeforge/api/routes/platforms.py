"""
Coding platform stats endpoints.
"""

import dataclasses
from typing import Any

from fastapi import APIRouter, HTTPException

from codeforge.services.platforms import (
    BasePlatformClient,
    PlatformError,
    PlatformRateLimited,
    PlatformUserNotFound,
    get_platform_client,
)

router = APIRouter(prefix="/platforms", tags=["platforms"])


@router.get("/{platform}/{username}")
async def get_platform_stats(platform: str, username: str) -> dict[str, Any]:
    """
    Fetch live profile stats from LeetCode, Codeforces or GitHub.

    Transient upstream failures are retried with backoff before an error
    is returned.
    """
    client = _client_or_404(platform)
    try:
        stats = await client.fetch_stats(username)
    except PlatformError as exc:
        raise _to_http_error(exc) from exc
    return {"platform": client.platform, **dataclasses.asdict(stats)}


@router.get("/{platform}/{username}/validate")
async def validate_platform_username(platform: str, username: str) -> dict[str, Any]:
    client = _client_or_404(platform)
    try:
        valid = await client.validate_username(username)
    except PlatformError as exc:
        raise _to_http_error(exc) from exc
    return {"platform": client.platform, "username": username, "valid": valid}


def _client_or_404(platform: str) -> BasePlatformClient:
    client = get_platform_client(platform)
    if client is None:
        raise HTTPException(status_code=404, detail=f"Unknown platform: {platform}")
    return client


def _to_http_error(exc: PlatformError) -> HTTPException:
    if isinstance(exc, PlatformUserNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PlatformRateLimited):
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after is not None else None
        return HTTPException(status_code=429, detail=str(exc), headers=headers)
    return HTTPException(status_code=502, detail=str(exc))

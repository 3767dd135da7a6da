"""
Rate limiter administration endpoints (owner only).
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from codeforge.api.deps import get_rate_limiter, require_secret_key
from codeforge.services.rate_limiting import RateLimiter

router = APIRouter(
    prefix="/rate-limits",
    tags=["rate-limits"],
    dependencies=[Depends(require_secret_key)],
)


@router.get("/stats")
async def get_rate_limit_stats(
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> dict[str, Any]:
    """Tracked users, tracked (user, action) records, currently blocked users and the limit table."""
    return limiter.get_stats().to_dict()


@router.get("/{user_id}/{action}")
async def get_rate_limit_status(
    user_id: str,
    action: str,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> dict[str, Any]:
    return limiter.get_rate_limit_status(user_id, action).to_dict()


@router.post("/{user_id}/{action}/check")
async def check_rate_limit(
    user_id: str,
    action: str,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> dict[str, Any]:
    """
    Count one request for (user_id, action), exactly like a chat event would.

    A rejected check is still a 200: being limited is an expected outcome,
    reported in the body as allowed=false with retryAfter/reason.
    """
    return limiter.check_rate_limit(user_id, action).to_dict()


@router.delete("/{user_id}")
async def reset_user_limits(
    user_id: str,
    action: Optional[str] = Query(None, description="Reset a single action only"),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> dict[str, Any]:
    if not limiter.reset_user_limits(user_id, action):
        raise HTTPException(status_code=404, detail="No rate limit records for user")
    return {"reset": True, "userId": user_id, "action": action}

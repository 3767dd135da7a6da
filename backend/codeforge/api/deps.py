"""
Shared FastAPI dependencies.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Query
from fastapi.requests import HTTPConnection

from codeforge.core.config import settings
from codeforge.services.chat_gateway import ChatGateway
from codeforge.services.rate_limiting import RateLimiter


def get_rate_limiter(conn: HTTPConnection) -> RateLimiter:
    """The limiter owned by the running application (see main.lifespan)."""
    return conn.app.state.rate_limiter


def get_chat_gateway(conn: HTTPConnection) -> ChatGateway:
    return conn.app.state.chat_gateway


def require_secret_key(
    x_secret_key: Optional[str] = Header(None),
    secret_key: Optional[str] = Query(None, alias="secretKey"),
) -> None:
    """Guard for owner-only routes: X-Secret-Key header or ?secretKey= param."""
    owner_key = settings.OWNER_SECRET_KEY
    if not owner_key:
        raise HTTPException(
            status_code=500,
            detail="Server configuration error: OWNER_SECRET_KEY not set",
        )

    provided = x_secret_key or secret_key
    if not provided:
        raise HTTPException(
            status_code=401,
            detail=(
                "Access denied: Secret key required. Provide it via "
                "'x-secret-key' header or 'secretKey' query parameter"
            ),
        )

    if not hmac.compare_digest(provided.encode(), owner_key.encode()):
        raise HTTPException(status_code=403, detail="Access denied: Invalid secret key")

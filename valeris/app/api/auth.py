"""
Request dependencies: Supabase client, authenticated user, rate limit, admin check.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Response

from valeris.app.common.errors import ForbiddenError, UnauthorizedError
from valeris.app.common.rate_limit import RateLimiter, client_identifier, rate_limit_headers
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


def get_supabase():
    return get_client()


def current_user(
    authorization: Optional[str] = Header(None),
    client=Depends(get_supabase),
) -> AuthUser:
    """Resolve the Bearer token to a Supabase auth user."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise UnauthorizedError("Missing authorization header")

    token = authorization.split(" ", 1)[1].strip()
    try:
        resp = client.auth.get_user(token)
    except Exception as e:
        logger.warning(f"Token lookup failed: {e}")
        raise UnauthorizedError("Unauthorized") from e

    user = getattr(resp, "user", None)
    if user is None:
        raise UnauthorizedError("Unauthorized")
    return AuthUser(id=user.id, email=getattr(user, "email", None))


def enforce_rate_limit(
    request: Request,
    response: Response,
    client=Depends(get_supabase),
) -> None:
    result = RateLimiter(client).check(client_identifier(request.headers), request.url.path)
    headers = rate_limit_headers(result)
    if not result.allowed:
        raise HTTPException(status_code=429, detail="Too many requests", headers=headers)
    response.headers.update(headers)


def require_admin(
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
) -> AuthUser:
    row = first_row(
        client.table("admin_users").select("id").eq("user_id", user.id).limit(1).execute()
    )
    if row is None:
        logger.warning(f"Non-admin {user.id} attempted an admin operation")
        raise ForbiddenError("Admin access required")
    return user

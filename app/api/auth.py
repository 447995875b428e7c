"""
JWT bearer authentication for the search routes.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.api.dependencies.search_resources import get_app_config
from app.api.exceptions import AuthenticationError, TokenExpiredError, TokenInvalidError
from app.config import AppConfig
from app.core.logging_utils import get_logger

logger = get_logger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60

# Missing credentials are reported as 401 by get_current_user, not 403 by HTTPBearer.
security = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    secret_key: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token for ``user_id``."""
    now = datetime.now(UTC)
    payload = {
        "user_id": user_id,
        "type": "access",
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def decode_token(token: str, secret_key: str) -> dict:
    """Decode and validate an access token.

    Raises:
        TokenExpiredError: Token has expired (401)
        TokenInvalidError: Token is malformed, wrongly signed or not an access token (401)
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError from None
    except jwt.InvalidTokenError as err:
        raise TokenInvalidError(str(err)) from err

    if payload.get("type", "access") != "access":
        raise TokenInvalidError("not an access token")
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    cfg: AppConfig = Depends(get_app_config),
) -> dict:
    """
    Dependency to get the current authenticated user.

    Raises:
        AuthenticationError: No bearer token, or the server has no signing secret (401)
        TokenExpiredError: Access token has expired (401)
        TokenInvalidError: Token is malformed or lacks a user id (401)
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")

    secret = cfg.runtime.jwt_secret_key
    if not secret:
        logger.error("jwt_secret_not_configured")
        raise AuthenticationError("Authentication is not configured")

    payload = decode_token(credentials.credentials, secret)
    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id:
        raise TokenInvalidError("missing user_id in token payload")

    return {"user_id": str(user_id)}

"""
JWT session handling for the web API.

This module provides:
- JWT token creation and verification
- FastAPI dependency for route protection
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Cookie, Header, HTTPException, Request
from jose import JWTError, jwt

from podcatalog.config import Config

logger = logging.getLogger(__name__)

SESSION_COOKIE = "podcatalog_session"


def create_access_token(user_data: dict, config: Config) -> str:
    """
    Create a JWT access token for a user authenticated elsewhere.

    This service has no login route. Tokens are issued by the external login
    service sharing JWT_SECRET_KEY (or by tooling and tests) through this
    helper, and accepted by `get_current_user`.

    Args:
        user_data: User information to encode in the token.
            Expected keys: sub (user_id), email.
        config: Application configuration with JWT settings.

    Returns:
        str: Encoded JWT token.

    Raises:
        ValueError: If JWT_SECRET_KEY is not configured or algorithm is invalid.
    """
    if not config.JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY must be configured")

    # Validate algorithm is not 'none' (security vulnerability)
    if config.JWT_ALGORITHM.lower() == "none":
        raise ValueError("JWT algorithm 'none' is not allowed")

    expire = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRATION_DAYS)
    to_encode = {
        **user_data,
        "exp": expire,
        "iat": datetime.now(timezone.utc)
    }
    return jwt.encode(to_encode, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def verify_token(token: str, config: Config) -> Optional[dict]:
    """
    Verify a JWT token and return its payload.

    Args:
        token: The JWT token to verify.
        config: Application configuration with JWT settings.

    Returns:
        Optional[dict]: Token payload if valid, None otherwise.
    """
    try:
        return jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    podcatalog_session: Optional[str] = Cookie(default=None)
) -> dict:
    """
    FastAPI dependency to get the current authenticated user.

    Accepts the JWT from an ``Authorization: Bearer`` header or, failing
    that, the session cookie. Raises 401 if not authenticated or the token
    is invalid.

    Args:
        request: FastAPI request object.
        authorization: Authorization header.
        podcatalog_session: Session cookie containing the JWT.

    Returns:
        dict: User data from the JWT payload; ``sub`` is the user ID.

    Raises:
        HTTPException: 401 if not authenticated or token is invalid.
    """
    config = request.app.state.config

    token = _bearer_token(authorization) or podcatalog_session
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_data = verify_token(token, config)
    if not user_data:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user_id = user_data.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    return user_data

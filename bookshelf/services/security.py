"""
Security Service

Handles password hashing and JWT token operations.

Security Features:
==================
1. Password hashing with bcrypt (passlib)
2. JWT access and refresh tokens (python-jose)
3. The user's role travels in the token as the "role" claim

Token Payload:
==============
    {
        "sub": "<user id>",
        "role": "author" | "reader",
        "type": "access" | "refresh",
        "exp": <expiry>
    }

The role claim is informational for clients. Authorization decisions are
made against the user row loaded for each request.
"""

import logging
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from bookshelf.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# bcrypt is the only scheme; "auto" upgrades deprecated hashes on verify
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.

    Example:
        >>> hashed = hash_password("SecurePass123")
        >>> hashed.startswith("$2b$")
        True
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plain password against a stored bcrypt hash.

    Returns False for accounts without a password.
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def _encode(data: dict, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({
        "exp": datetime.now(UTC) + expires_delta,
        "type": token_type,
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a short-lived JWT access token.

    Example:
        >>> token = create_access_token({"sub": "u1", "role": "reader"})
        >>> token.count(".") == 2
        True
    """
    return _encode(
        data,
        "access",
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT refresh token (longer-lived than the access token)."""
    return _encode(
        data,
        "refresh",
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def create_token_pair(user_id: str, role: str) -> dict:
    """
    Issue an access/refresh token pair for a user.

    Returns:
        Dict matching the Token response schema
    """
    claims = {"sub": user_id, "role": role}
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
    }


def decode_token(token: str) -> dict | None:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None


def verify_token_type(token: str, expected_type: str) -> dict | None:
    """Decode a token and check it is of the expected type."""
    payload = decode_token(token)

    if payload is None:
        return None

    if payload.get("type") != expected_type:
        logger.warning(f"Token type mismatch: expected {expected_type}")
        return None

    return payload

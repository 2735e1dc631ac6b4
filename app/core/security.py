"""
Token Security
Issues and verifies the bearer JWTs that identify API callers.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from app.core.config import settings


@dataclass
class TokenPayload:
    """Identity carried by an access token."""
    user_id: str
    role: str = "user"


def create_access_token(
    user_id: str,
    role: str = "user",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token for a user.

    Args:
        user_id: Id stored in the ``sub`` claim
        role: ``user`` or ``admin``
        expires_delta: Token lifetime (defaults to JWT_EXPIRE_MINUTES)

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
    claims = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """
    Verify a token and return its payload.

    Raises:
        jwt.ExpiredSignatureError: token past its ``exp``
        jwt.InvalidTokenError: bad signature, malformed token or missing ``sub``
    """
    claims = jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    return TokenPayload(user_id=str(claims["sub"]), role=claims.get("role", "user"))

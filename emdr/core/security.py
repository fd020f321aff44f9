"""Security utilities for password hashing and session tokens."""

import hashlib
from datetime import datetime
from typing import Any

import bcrypt
from jose import JWTError, jwt

from emdr.core.config import get_settings

settings = get_settings()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    # Support test hash format with $plain$ prefix
    if hashed_password.startswith("$plain$"):
        expected_hash = hashed_password[7:]
        actual_hash = hashlib.sha256(plain_password.encode()).hexdigest()
        return expected_hash == actual_hash

    # bcrypt has a 72 byte limit, truncate if needed
    truncated = plain_password[:72].encode("utf-8")
    return bcrypt.checkpw(truncated, hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    truncated = password[:72].encode("utf-8")
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(truncated, salt).decode("utf-8")


def create_session_token(user_id: str, session_id: str, expires_at: datetime) -> str:
    """Create a signed token referencing a server-side session row."""
    to_encode = {
        "sub": user_id,
        "sid": session_id,
        "exp": expires_at,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_session_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a session token."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError:
        return None


def get_token_data(token: str) -> dict[str, Any] | None:
    """Extract data from a token without checking expiry, audience or issuer."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": False, "verify_aud": False, "verify_iss": False},
        )
    except JWTError:
        return None

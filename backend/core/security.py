"""Password hashing (Argon2) and bearer token signing (HS256 JWT)."""

from datetime import datetime, timedelta, timezone
from typing import Any

import argon2
from jose import ExpiredSignatureError, JWTError, jwt

from core.errors import AuthenticationError

TOKEN_ALGORITHM = "HS256"

_hasher = argon2.PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password using Argon2."""
    return _hasher.hash(password)


def verify_password(password: str, hash: str) -> bool:
    """Verify a password against a hash.

    Returns True if the password matches, False otherwise. A stored value
    that is not an Argon2 hash never matches.
    """
    try:
        return _hasher.verify(hash, password)
    except (
        argon2.exceptions.VerificationError,
        argon2.exceptions.InvalidHashError,
    ):
        return False


def issue_token(
    admin_id: str,
    username: str,
    secret: str,
    expire_minutes: int,
) -> str:
    """Sign a token identifying an administrator."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": admin_id,
        "username": username,
        "iat": now,
        "exp": now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(claims, secret, algorithm=TOKEN_ALGORITHM)


def decode_token(token: str, secret: str) -> dict[str, Any]:
    """Verify a token and return its claims.

    Raises:
        AuthenticationError: If the token is expired, tampered with or
            does not name an administrator.
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError(detail="Token has expired")
    except JWTError:
        raise AuthenticationError(detail="Invalid token")

    if not claims.get("sub"):
        raise AuthenticationError(detail="Invalid token")
    return claims

"""Credential utilities: password hashing, password length policy, and JWT helpers."""

import base64
import hashlib
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from jwt.exceptions import PyJWTError


def _prehash(password: str) -> bytes:
    """SHA-256 then base64, so passwords of any length fit bcrypt's 72-byte input."""
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(_prehash(plain_password), hashed_password.encode("utf-8"))


def validate_password_length(password: str, min_length: int = 6) -> None:
    """Raise ValueError when the password is shorter than min_length."""
    if len(password) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters")


def create_access_token(
    data: dict,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    """Create a signed JWT. Used by operators and tests; the API never issues tokens."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict | None:
    """Decode and validate a JWT token. Returns None on failure."""
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except PyJWTError:
        return None

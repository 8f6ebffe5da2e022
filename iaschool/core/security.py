# iaschool/core/security.py
"""Password hashing and access tokens."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple
from uuid import UUID
import logging

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from .config import settings
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """Return True if the provided password matches the hash."""
    try:
        return _hasher.verify(hashed_password, password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def needs_rehash(hashed_password: str) -> bool:
    try:
        return _hasher.check_needs_rehash(hashed_password)
    except InvalidHash:
        return True


def create_access_token(user_id: UUID, school_id: UUID, role: str) -> Tuple[str, datetime]:
    """Issue a signed access token and return it with its expiry"""
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "school_id": str(school_id),
        "role": role,
        "type": "access",
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, expires_at


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected access token: {e}")
        raise AuthenticationError("Invalid token")

    if payload.get("type") != "access" or "sub" not in payload:
        raise AuthenticationError("Invalid token")
    return payload

# telecare/core/security.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from telecare.core.config import settings

# =========
# Passwords
# =========

_pwd_ctx = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    default="bcrypt_sha256",
    deprecated="auto",
)


def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or plain_password == "":
        raise ValueError("Password must be a non-empty string")
    return _pwd_ctx.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash or not plain_password:
        return False
    try:
        return _pwd_ctx.verify(plain_password, password_hash)
    except ValueError:
        # malformed or unknown hash
        return False


# =====
# JWTs
# =====

class TokenType(str, Enum):
    ACCESS = "access"
    VIDEO = "video"


ALGORITHM = "HS256"


class InvalidTokenError(Exception):
    """Raised when a token is missing/invalid/expired or claims are malformed."""


def encode_token(
    claims: Dict[str, Any],
    *,
    secret: str,
    token_type: TokenType,
    issued_at: datetime,
    expires_in: timedelta,
) -> str:
    """
    Sign `claims` with the standard type/iat/exp/jti claims added.
    """
    to_encode: Dict[str, Any] = {
        **claims,
        "type": token_type.value,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_in).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_access_token(
    *,
    subject: str,                # the user id (UUID as str)
    role: Optional[str] = None,  # "patient" | "doctor" | "admin"
    email: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Create a short-lived Bearer access token.
    """
    claims: Dict[str, Any] = {"sub": subject}
    if role:
        claims["role"] = role
    if email:
        claims["email"] = email
    return encode_token(
        claims,
        secret=settings.JWT_SECRET,
        token_type=TokenType.ACCESS,
        issued_at=datetime.now(timezone.utc),
        expires_in=timedelta(minutes=expires_minutes or settings.ACCESS_EXPIRES_MIN),
    )


def decode_token(token: str, *, secret: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises InvalidTokenError on failure.
    """
    if not token:
        raise InvalidTokenError("missing_token")
    try:
        payload = jwt.decode(token, secret or settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as exc:
        # expired signature, invalid signature, bad format
        raise InvalidTokenError("invalid_token") from exc

    if "sub" not in payload or "type" not in payload:
        raise InvalidTokenError("invalid_claims")
    return payload


def is_access_token(payload: Dict[str, Any]) -> bool:
    return payload.get("type") == TokenType.ACCESS.value

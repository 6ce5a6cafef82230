"""
Token issuing/verification and password hashing.

Tokens are HS256 JWTs signed with one shared secret. Claims:
sub (user id), email, kind ("access" | "refresh"), iat, exp.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from datetime import datetime, timezone
from enum import Enum

import bcrypt
from fastapi.concurrency import run_in_threadpool
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from app.core.config import Settings
from app.core.errors import Unauthorized

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    email: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime


def _encode(settings: Settings, subject: str, email: str, kind: TokenKind, expires_in: int) -> str:
    issued_at = int(datetime.now(timezone.utc).timestamp())
    payload = {
        "sub": subject,
        "email": email,
        "kind": kind.value,
        "iat": issued_at,
        "exp": issued_at + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    settings: Settings, subject: str, email: str, expires_in: int | None = None
) -> str:
    if expires_in is None:
        expires_in = settings.jwt_expires_in
    return _encode(settings, subject, email, TokenKind.ACCESS, expires_in)


def create_refresh_token(
    settings: Settings, subject: str, email: str, expires_in: int | None = None
) -> str:
    if expires_in is None:
        expires_in = settings.jwt_refresh_expires_in
    return _encode(settings, subject, email, TokenKind.REFRESH, expires_in)


def verify_token(settings: Settings, token: str, expected_kind: TokenKind) -> TokenClaims:
    """Decode a token and check its kind; raise Unauthorized on any failure."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except ExpiredSignatureError:
        logger.warning(f"Rejected expired {expected_kind.value} token")
        raise Unauthorized("token expired")
    except JWTError as e:
        logger.warning(f"Rejected invalid {expected_kind.value} token: {e}")
        raise Unauthorized("invalid token")

    subject = payload.get("sub")
    email = payload.get("email")
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")
    if not isinstance(subject, str) or not subject or not isinstance(email, str):
        raise Unauthorized("invalid token claims")
    if not isinstance(issued_at, int) or not isinstance(expires_at, int):
        raise Unauthorized("invalid token claims")

    if payload.get("kind") != expected_kind.value:
        logger.warning(
            f"Rejected token of kind {payload.get('kind')!r}, expected {expected_kind.value}"
        )
        raise Unauthorized(f"invalid {expected_kind.value} token")

    return TokenClaims(
        subject=subject,
        email=email,
        kind=expected_kind,
        issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
    )


def _hash(password: str) -> str:
    secret = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def _check(password: str, hashed: str) -> bool:
    secret = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(secret, hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


@lru_cache
def dummy_hash() -> str:
    """Fixed bcrypt hash checked in place of a missing user's hash."""
    return _hash("not-a-real-password")


async def hash_password(password: str) -> str:
    return await run_in_threadpool(_hash, password)


async def verify_password(password: str, hashed: str) -> bool:
    return await run_in_threadpool(_check, password, hashed)

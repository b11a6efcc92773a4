"""
Access token codec.

Tokens carry exactly {userId, email, role} plus the registered iat/exp
claims. Organization membership is never embedded: it is re-read from the
database on every request so membership changes apply immediately.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from records_api.core.config import get_settings

settings = get_settings()


class TokenError(Exception):
    """Base class for token verification failures."""

    message = "Invalid token"


class InvalidSignature(TokenError):
    message = "Invalid token signature"


class TokenExpired(TokenError):
    message = "Token expired"


class MalformedToken(TokenError):
    message = "Malformed token"


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    email: str
    role: str


def create_access_token(
    user_id: uuid.UUID,
    email: str,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "userId": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    """Verify a token and return its claims. Raises a TokenError subclass on failure."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except jwt.InvalidSignatureError as exc:
        raise InvalidSignature() from exc
    except jwt.PyJWTError as exc:
        raise MalformedToken() from exc

    try:
        return TokenClaims(
            user_id=uuid.UUID(payload["userId"]),
            email=payload["email"],
            role=payload["role"],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedToken() from exc

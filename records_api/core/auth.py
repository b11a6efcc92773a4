"""
Authentication and authorization dependencies.

Supports:
- Password hashing (bcrypt, cost factor from settings)
- Claims verified by the authentication middleware
- IdentityContext resolution per request
- Role and organization-scope checks
"""

from __future__ import annotations

import uuid
from typing import Optional

import bcrypt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.core.access import IdentityContext, resolve_identity
from records_api.core.config import get_settings
from records_api.core.database import get_session
from records_api.core.tokens import TokenClaims

settings = get_settings()

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(
        password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    ).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

async def get_token_claims(request: Request) -> TokenClaims:
    """Claims verified by AuthenticationMiddleware for this request."""
    claims = getattr(request.state, "claims", None)
    if claims is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    return claims


async def get_identity_context(
    claims: TokenClaims = Depends(get_token_claims),
    x_organization_id: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
) -> IdentityContext:
    """Main authorization dependency: resolve the caller and their organizations."""
    return await resolve_identity(session, claims, x_organization_id)


# ---------------------------------------------------------------------------
# Authorization dependencies (role / scope checks)
# ---------------------------------------------------------------------------

async def require_organization_scope(
    identity: IdentityContext = Depends(get_identity_context),
) -> IdentityContext:
    """Caller must have a current organization."""
    if identity.current_organization_id is None:
        raise HTTPException(status_code=403, detail="No organization access")
    return identity


async def require_super_admin(
    identity: IdentityContext = Depends(get_identity_context),
) -> IdentityContext:
    if not identity.is_super_admin:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return identity


def require_org_admin(identity: IdentityContext, organization_id: uuid.UUID) -> None:
    """Raise 403 unless the caller administers the given organization."""
    if not identity.is_org_admin(organization_id):
        raise HTTPException(status_code=403, detail="Insufficient permissions")

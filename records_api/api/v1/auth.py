"""
Authentication endpoints.

POST /register  — Create a user (public)
POST /login     — Exchange credentials for a bearer token (public)
POST /refresh   — New token for the current identity
GET  /me        — Current identity and organizations
POST /logout    — Acknowledge logout (tokens are stateless)
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.core.access import IdentityContext
from records_api.core.auth import get_identity_context
from records_api.core.database import get_session
from records_api.core.fhir import informational_outcome
from records_api.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    TokenResponse,
)
from records_api.services import users as user_service

log = structlog.get_logger()
router = APIRouter()


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user, optionally as a member of one organization."""
    await user_service.register_user(body, session)
    return informational_outcome("User registered successfully")


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    return await user_service.login(body.email, body.password, session)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(identity: IdentityContext = Depends(get_identity_context)):
    return TokenResponse(token=user_service.refresh_token(identity))


@router.get("/me", response_model=MeResponse)
async def me(identity: IdentityContext = Depends(get_identity_context)):
    return user_service.describe_identity(identity)


@router.post("/logout")
async def logout(identity: IdentityContext = Depends(get_identity_context)):
    """Tokens are not revoked server-side; clients discard them."""
    log.info("auth.logout", user_id=str(identity.id))
    return informational_outcome("Logged out successfully")

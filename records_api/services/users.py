"""
User service: registration, login and organization membership listings.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from records_api.core.access import (
    IdentityContext,
    ensure_membership,
    load_active_memberships,
)
from records_api.core.auth import hash_password, verify_password
from records_api.core.tokens import create_access_token
from records_api.models.organization import Organization
from records_api.models.user import User
from records_api.models.user_org import UserOrganizationAccess
from records_api.schemas.auth import (
    LoginResponse,
    LoginUser,
    MeResponse,
    OrganizationSummary,
    RegisterRequest,
    UserOrganization,
)
from records_api.schemas.common import (
    SUPER_ADMIN_MEMBERSHIP_ROLE,
    MembershipStatus,
    UserRole,
)

log = structlog.get_logger()


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def register_user(req: RegisterRequest, session: AsyncSession) -> User:
    """Create a user; optionally grant membership in one organization.

    A failure to create the membership is logged and does not fail the
    registration.
    """
    if await get_user_by_email(req.email, session):
        log.warning("auth.register_conflict", email=req.email)
        raise HTTPException(status_code=409, detail="User already exists")

    user = User(
        email=req.email,
        password_hash=hash_password(req.password),
        role=req.role.value,
        active=True,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email.
        await session.rollback()
        log.warning("auth.register_conflict", email=req.email)
        raise HTTPException(status_code=409, detail="User already exists")
    log.info("auth.user_registered", user_id=str(user.id), role=user.role)

    if req.organization_id is not None:
        membership_role = (
            SUPER_ADMIN_MEMBERSHIP_ROLE
            if req.role == UserRole.SUPER_ADMIN
            else req.role.value
        )
        try:
            org = await session.get(Organization, req.organization_id)
            if org is None:
                log.warning(
                    "auth.register_membership_skipped",
                    user_id=str(user.id),
                    org_id=str(req.organization_id),
                    reason="organization not found",
                )
            else:
                await ensure_membership(session, user.id, org.id, membership_role)
                user.primary_organization_id = org.id
                session.add(user)
                await session.flush()
                log.info(
                    "auth.register_membership_created",
                    user_id=str(user.id),
                    org_id=str(org.id),
                )
        except SQLAlchemyError as exc:
            log.warning(
                "auth.register_membership_failed",
                user_id=str(user.id),
                org_id=str(req.organization_id),
                error=str(exc),
            )

    return user


def _summaries(access) -> list[OrganizationSummary]:
    return [
        OrganizationSummary(
            id=a.organization_id,
            name=a.organization_name,
            role=a.role,
            permissions=a.permissions,
        )
        for a in access
    ]


async def login(email: str, password: str, session: AsyncSession) -> LoginResponse:
    """Verify credentials and issue a token. Every failure is the same 401."""
    user = await get_user_by_email(email, session)
    if user is None or not user.active:
        log.warning("auth.login_failed", email=email, reason="invalid user")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not verify_password(password, user.password_hash):
        log.warning("auth.login_failed", email=email, reason="invalid password")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user.last_login = datetime.now(timezone.utc)
    session.add(user)
    await session.flush()

    access = await load_active_memberships(user.id, session)
    token = create_access_token(user.id, user.email, user.role)

    log.info("auth.login_success", user_id=str(user.id))
    return LoginResponse(
        token=token,
        user=LoginUser(
            id=user.id,
            email=user.email,
            role=user.role,
            primary_organization_id=user.primary_organization_id,
            organizations=_summaries(access),
        ),
    )


def refresh_token(identity: IdentityContext) -> str:
    token = create_access_token(identity.id, identity.email, identity.role)
    log.info("auth.token_refreshed", user_id=str(identity.id))
    return token


def describe_identity(identity: IdentityContext) -> MeResponse:
    return MeResponse(
        id=identity.id,
        email=identity.email,
        role=identity.role,
        primary_organization_id=identity.primary_organization_id,
        current_organization_id=identity.current_organization_id,
        organizations=_summaries(identity.organization_access),
    )


async def list_user_organizations(
    identity: IdentityContext, session: AsyncSession
) -> list[UserOrganization]:
    """Active memberships with organization details."""
    result = await session.execute(
        select(UserOrganizationAccess, Organization)
        .join(Organization, Organization.id == UserOrganizationAccess.organization_id)
        .where(UserOrganizationAccess.user_id == identity.id)
        .where(UserOrganizationAccess.status == MembershipStatus.ACTIVE.value)
        .order_by(UserOrganizationAccess.created_at, UserOrganizationAccess.id)
    )
    return [
        UserOrganization(
            id=org.id,
            name=org.name,
            type=org.type,
            identifier=org.identifier,
            role=membership.role,
            permissions=membership.permissions,
            is_primary=org.id == identity.primary_organization_id,
        )
        for membership, org in result.all()
    ]


def switch_organization(identity: IdentityContext, organization_id: uuid.UUID) -> uuid.UUID:
    """Validate a client-side organization switch; nothing is persisted."""
    if not identity.has_access(organization_id):
        raise HTTPException(status_code=403, detail="No access to specified organization")
    log.info(
        "user.organization_switched",
        user_id=str(identity.id),
        org_id=str(organization_id),
    )
    return organization_id

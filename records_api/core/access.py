"""
Access resolution: turns verified token claims into the per-request
IdentityContext that every handler is scoped by.

Supports:
- Identity lookup (unknown or deactivated users are rejected)
- Active membership load, joined with organization names
- Super admin self-heal: a super admin with no memberships is granted
  membership in every active organization
- Current organization selection (header, primary, first membership)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from records_api.core.metrics import metrics
from records_api.core.tokens import TokenClaims
from records_api.models.organization import Organization
from records_api.models.user import User
from records_api.models.user_org import UserOrganizationAccess
from records_api.schemas.common import (
    ORG_ADMIN_ROLES,
    SUPER_ADMIN_MEMBERSHIP_ROLE,
    MembershipStatus,
    UserRole,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class OrganizationAccess:
    """One active membership of the caller."""

    organization_id: uuid.UUID
    organization_name: str
    role: str
    permissions: Optional[dict] = None


@dataclass(frozen=True)
class IdentityContext:
    """The resolved caller for a single request."""

    id: uuid.UUID
    email: str
    role: str
    organization_ids: tuple[uuid.UUID, ...] = ()
    primary_organization_id: Optional[uuid.UUID] = None
    current_organization_id: Optional[uuid.UUID] = None
    organization_access: tuple[OrganizationAccess, ...] = field(default=())

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value

    def has_access(self, organization_id: uuid.UUID) -> bool:
        return organization_id in self.organization_ids

    def membership_role(self, organization_id: uuid.UUID) -> Optional[str]:
        for access in self.organization_access:
            if access.organization_id == organization_id:
                return access.role
        return None

    def is_org_admin(self, organization_id: uuid.UUID) -> bool:
        return self.membership_role(organization_id) in ORG_ADMIN_ROLES

    def search_scope(self, requested: Optional[uuid.UUID] = None) -> list[uuid.UUID]:
        """Organizations a search may cover.

        An explicit filter must be one of the caller's organizations; without
        one the search is limited to the current organization.
        """
        if requested is not None:
            if not self.has_access(requested):
                raise HTTPException(
                    status_code=403, detail="No access to specified organization"
                )
            return [requested]
        if self.current_organization_id is None:
            return []
        return [self.current_organization_id]


async def load_active_memberships(
    user_id: uuid.UUID, session: AsyncSession
) -> list[OrganizationAccess]:
    """Active memberships of a user, oldest first."""
    result = await session.execute(
        select(UserOrganizationAccess, Organization.name)
        .join(Organization, Organization.id == UserOrganizationAccess.organization_id)
        .where(UserOrganizationAccess.user_id == user_id)
        .where(UserOrganizationAccess.status == MembershipStatus.ACTIVE.value)
        .order_by(UserOrganizationAccess.created_at, UserOrganizationAccess.id)
    )
    return [
        OrganizationAccess(
            organization_id=membership.organization_id,
            organization_name=name,
            role=membership.role,
            permissions=membership.permissions,
        )
        for membership, name in result.all()
    ]


async def ensure_membership(
    session: AsyncSession,
    user_id: uuid.UUID,
    organization_id: uuid.UUID,
    role: str,
) -> bool:
    """Insert an active membership unless one already exists.

    Runs in a savepoint so a concurrent insert of the same pair only rolls
    back this row. Returns True if a row was created.
    """
    try:
        async with session.begin_nested():
            session.add(
                UserOrganizationAccess(
                    user_id=user_id,
                    organization_id=organization_id,
                    role=role,
                    status=MembershipStatus.ACTIVE.value,
                )
            )
    except IntegrityError:
        return False
    return True


async def grant_super_admin_access(
    session: AsyncSession, user: User
) -> list[OrganizationAccess]:
    """Grant a super admin membership in every active organization.

    Idempotent: existing rows are left untouched. Sets the primary
    organization to the first organization if the user has none.

    Only the enumeration can fail the call. Once the organizations are
    known, the returned access list is built from them; a failed insert or
    commit (lock timeout, a concurrent grant winning the race) is logged and
    does not shrink it.
    """
    user_id = user.id
    result = await session.execute(
        select(Organization)
        .where(Organization.active == True)  # noqa: E712
        .order_by(Organization.created_at, Organization.id)
    )
    # Built before any write: a rollback below expires the loaded rows.
    access = [
        OrganizationAccess(
            organization_id=org.id,
            organization_name=org.name,
            role=SUPER_ADMIN_MEMBERSHIP_ROLE,
        )
        for org in result.scalars().all()
    ]

    metrics.inc("access_self_heal_total")
    created = 0
    try:
        for org_access in access:
            org_id = org_access.organization_id
            try:
                inserted = await ensure_membership(
                    session, user_id, org_id, SUPER_ADMIN_MEMBERSHIP_ROLE
                )
            except SQLAlchemyError as exc:
                log.warning(
                    "access.self_heal_insert_failed",
                    user_id=str(user_id),
                    org_id=str(org_id),
                    error=str(exc),
                )
                continue
            if inserted:
                created += 1
            else:
                log.info("access.self_heal_exists", user_id=str(user_id), org_id=str(org_id))

        if access:
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .where(User.primary_organization_id.is_(None))
                .values(primary_organization_id=access[0].organization_id)
                .execution_options(synchronize_session=False)
            )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        metrics.inc("access_self_heal_failures_total")
        log.error("access.self_heal_failed", user_id=str(user_id), error=str(exc))
        return access

    metrics.inc("access_self_heal_grants_total", created)
    log.info(
        "access.self_heal_granted",
        user_id=str(user_id),
        organizations=len(access),
        created=created,
    )
    return access


def _parse_organization_header(value: Optional[str]) -> Optional[uuid.UUID | str]:
    """Header value as a UUID; a malformed value is kept so it fails the access check."""
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return value


async def resolve_identity(
    session: AsyncSession,
    claims: TokenClaims,
    requested_organization_id: Optional[str] = None,
) -> IdentityContext:
    """Build the IdentityContext for verified claims.

    Raises 401 for an unknown or inactive user and 403 when the selected
    current organization is not one of the caller's memberships.
    """
    user = await session.get(User, claims.user_id)
    if user is None or not user.active:
        log.warning("access.invalid_user", user_id=str(claims.user_id))
        raise HTTPException(status_code=401, detail="Invalid or inactive user")

    user_id, email, role = user.id, user.email, user.role
    primary_organization_id = user.primary_organization_id

    access = await load_active_memberships(user_id, session)

    if not access and role == UserRole.SUPER_ADMIN.value:
        try:
            access = await grant_super_admin_access(session, user)
        except SQLAlchemyError as exc:
            # Enumeration failed; a concurrent grant may have landed meanwhile.
            await session.rollback()
            log.error("access.self_heal_enumeration_failed", user_id=str(user_id), error=str(exc))
            access = await load_active_memberships(user_id, session)
        if primary_organization_id is None and access:
            primary_organization_id = access[0].organization_id

    organization_ids = tuple(dict.fromkeys(a.organization_id for a in access))

    requested = _parse_organization_header(requested_organization_id)
    current = requested or primary_organization_id or (
        organization_ids[0] if organization_ids else None
    )

    if current is not None and current not in organization_ids:
        metrics.inc("access_denied_total")
        log.warning(
            "access.organization_denied",
            user_id=str(user_id),
            org_id=str(current),
        )
        raise HTTPException(status_code=403, detail="No access to specified organization")

    return IdentityContext(
        id=user_id,
        email=email,
        role=role,
        organization_ids=organization_ids,
        primary_organization_id=primary_organization_id,
        current_organization_id=current,
        organization_access=tuple(access),
    )

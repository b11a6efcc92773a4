"""
Organization service: FHIR Organization search, read, create and update.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from records_api.core.access import IdentityContext, ensure_membership
from records_api.core.auth import require_org_admin
from records_api.core.fhir import organization_from_db, organization_to_db
from records_api.models.organization import Organization
from records_api.schemas.common import SUPER_ADMIN_MEMBERSHIP_ROLE

log = structlog.get_logger()


async def search_organizations(
    identity: IdentityContext,
    session: AsyncSession,
    name: Optional[str] = None,
) -> list[dict]:
    """Organizations the caller belongs to."""
    if not identity.organization_ids:
        return []
    query = (
        select(Organization)
        .where(Organization.id.in_(identity.organization_ids))
        .order_by(Organization.name)
    )
    result = await session.execute(query)
    organizations = result.scalars().all()
    if name:
        needle = name.lower()
        organizations = [org for org in organizations if needle in org.name.lower()]
    return [organization_from_db(org) for org in organizations]


async def get_organization(
    organization_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> dict:
    """Read one organization. Members only."""
    if not identity.has_access(organization_id):
        raise HTTPException(status_code=403, detail="No access to this organization")
    org = await session.get(Organization, organization_id)
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return organization_from_db(org)


async def _identifier_taken(
    identifier: str, session: AsyncSession, exclude_id: Optional[uuid.UUID] = None
) -> bool:
    query = select(Organization.id).where(Organization.identifier == identifier)
    if exclude_id is not None:
        query = query.where(Organization.id != exclude_id)
    result = await session.execute(query)
    return result.first() is not None


async def create_organization(
    resource: dict, identity: IdentityContext, session: AsyncSession
) -> dict:
    """Create an organization (super admin only). The creator becomes an admin member."""
    if not identity.is_super_admin:
        raise HTTPException(status_code=403, detail="Insufficient permissions")

    values = organization_to_db(resource)
    if await _identifier_taken(values["identifier"], session):
        raise HTTPException(status_code=409, detail="Organization identifier already exists")

    org = Organization(**values)
    session.add(org)
    await session.flush()

    await ensure_membership(session, identity.id, org.id, SUPER_ADMIN_MEMBERSHIP_ROLE)

    log.info("organization.created", org_id=str(org.id), creator=str(identity.id))
    return organization_from_db(org)


async def update_organization(
    organization_id: uuid.UUID,
    resource: dict,
    identity: IdentityContext,
    session: AsyncSession,
) -> dict:
    """Replace an organization's content. Requires an admin membership in it."""
    require_org_admin(identity, organization_id)

    org = await session.get(Organization, organization_id)
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")

    values = organization_to_db(resource)
    identifiers = resource.get("identifier") or []
    if not (identifiers and identifiers[0].get("value")):
        values["identifier"] = org.identifier
    elif await _identifier_taken(values["identifier"], session, exclude_id=org.id):
        raise HTTPException(status_code=409, detail="Organization identifier already exists")

    for column, value in values.items():
        setattr(org, column, value)
    session.add(org)
    await session.flush()
    await session.refresh(org)

    log.info("organization.updated", org_id=str(org.id), user_id=str(identity.id))
    return organization_from_db(org)

"""
Practitioner service: organization-scoped FHIR Practitioner operations.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from records_api.core.access import IdentityContext
from records_api.core.fhir import (
    codeable_concepts_contain,
    human_name_matches,
    practitioner_from_db,
    practitioner_to_db,
)
from records_api.models.organization import Organization
from records_api.models.practitioner import Practitioner, PractitionerOrganization
from records_api.schemas.common import MembershipStatus

log = structlog.get_logger()


def _visible_in(organization_ids):
    return (
        select(PractitionerOrganization.practitioner_id)
        .where(PractitionerOrganization.organization_id.in_(organization_ids))
        .where(PractitionerOrganization.status == MembershipStatus.ACTIVE.value)
    )


async def _organization_links(
    practitioner_ids: list[uuid.UUID], session: AsyncSession
) -> dict[uuid.UUID, list[tuple[PractitionerOrganization, Optional[str]]]]:
    links: dict[uuid.UUID, list] = defaultdict(list)
    if not practitioner_ids:
        return links
    result = await session.execute(
        select(PractitionerOrganization, Organization.name)
        .join(Organization, Organization.id == PractitionerOrganization.organization_id)
        .where(PractitionerOrganization.practitioner_id.in_(practitioner_ids))
        .order_by(PractitionerOrganization.created_at)
    )
    for link, org_name in result.all():
        links[link.practitioner_id].append((link, org_name))
    return links


async def _get_visible_practitioner(
    practitioner_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> Practitioner:
    if not identity.organization_ids:
        raise HTTPException(status_code=404, detail="Practitioner not found")
    result = await session.execute(
        select(Practitioner)
        .where(Practitioner.id == practitioner_id)
        .where(Practitioner.id.in_(_visible_in(identity.organization_ids)))
    )
    practitioner = result.scalar_one_or_none()
    if practitioner is None:
        raise HTTPException(status_code=404, detail="Practitioner not found")
    return practitioner


def _to_db(resource: dict) -> dict:
    try:
        return practitioner_to_db(resource)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid birthDate")


async def _render(practitioner: Practitioner, session: AsyncSession) -> dict:
    links = await _organization_links([practitioner.id], session)
    return practitioner_from_db(practitioner, links.get(practitioner.id, []))


async def search_practitioners(
    identity: IdentityContext,
    session: AsyncSession,
    organization: Optional[uuid.UUID] = None,
    name: Optional[str] = None,
    specialty: Optional[str] = None,
) -> list[dict]:
    scope = identity.search_scope(organization)
    if not scope:
        return []

    result = await session.execute(
        select(Practitioner)
        .where(Practitioner.id.in_(_visible_in(scope)))
        .order_by(Practitioner.created_at)
    )
    practitioners = result.scalars().all()

    if name:
        practitioners = [p for p in practitioners if human_name_matches(p.name, name)]
    if specialty:
        practitioners = [
            p for p in practitioners if codeable_concepts_contain(p.qualification, specialty)
        ]

    links = await _organization_links([p.id for p in practitioners], session)
    return [practitioner_from_db(p, links.get(p.id, [])) for p in practitioners]


async def get_practitioner(
    practitioner_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> dict:
    practitioner = await _get_visible_practitioner(practitioner_id, identity, session)
    return await _render(practitioner, session)


async def create_practitioner(
    resource: dict, identity: IdentityContext, session: AsyncSession
) -> dict:
    """Create a practitioner affiliated with the caller's current organization."""
    organization_id = identity.current_organization_id
    practitioner = Practitioner(**_to_db(resource))
    session.add(practitioner)
    await session.flush()

    session.add(
        PractitionerOrganization(
            practitioner_id=practitioner.id,
            organization_id=organization_id,
            role="primary",
            status=MembershipStatus.ACTIVE.value,
        )
    )
    await session.flush()

    log.info(
        "practitioner.created",
        practitioner_id=str(practitioner.id),
        org_id=str(organization_id),
    )
    return await _render(practitioner, session)


async def update_practitioner(
    practitioner_id: uuid.UUID,
    resource: dict,
    identity: IdentityContext,
    session: AsyncSession,
) -> dict:
    practitioner = await _get_visible_practitioner(practitioner_id, identity, session)
    for column, value in _to_db(resource).items():
        setattr(practitioner, column, value)
    session.add(practitioner)
    await session.flush()
    await session.refresh(practitioner)

    log.info(
        "practitioner.updated",
        practitioner_id=str(practitioner.id),
        user_id=str(identity.id),
    )
    return await _render(practitioner, session)


async def assign_practitioner_organization(
    practitioner_id: uuid.UUID,
    organization_id: uuid.UUID,
    role: str,
    permissions: Optional[dict],
    identity: IdentityContext,
    session: AsyncSession,
) -> None:
    if not identity.has_access(organization_id):
        raise HTTPException(status_code=403, detail="No access to target organization")

    await _get_visible_practitioner(practitioner_id, identity, session)

    result = await session.execute(
        select(PractitionerOrganization.id)
        .where(PractitionerOrganization.practitioner_id == practitioner_id)
        .where(PractitionerOrganization.organization_id == organization_id)
    )
    if result.first() is not None:
        raise HTTPException(
            status_code=409, detail="Practitioner already assigned to organization"
        )

    session.add(
        PractitionerOrganization(
            practitioner_id=practitioner_id,
            organization_id=organization_id,
            role=role,
            permissions=permissions,
            status=MembershipStatus.ACTIVE.value,
        )
    )
    await session.flush()
    log.info(
        "practitioner.organization_assigned",
        practitioner_id=str(practitioner_id),
        org_id=str(organization_id),
    )

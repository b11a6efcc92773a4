"""
Patient service: organization-scoped FHIR Patient operations.

A patient is visible to a caller when it has an active link to one of the
caller's organizations.
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
    human_name_matches,
    parse_date,
    patient_from_db,
    patient_to_db,
)
from records_api.models.organization import Organization
from records_api.models.patient import Patient, PatientOrganization
from records_api.schemas.common import MembershipStatus

log = structlog.get_logger()


def _visible_in(organization_ids):
    """Subquery: patients with an active link to any of these organizations."""
    return (
        select(PatientOrganization.patient_id)
        .where(PatientOrganization.organization_id.in_(organization_ids))
        .where(PatientOrganization.status == MembershipStatus.ACTIVE.value)
    )


async def _organization_links(
    patient_ids: list[uuid.UUID], session: AsyncSession
) -> dict[uuid.UUID, list[tuple[PatientOrganization, Optional[str]]]]:
    links: dict[uuid.UUID, list] = defaultdict(list)
    if not patient_ids:
        return links
    result = await session.execute(
        select(PatientOrganization, Organization.name)
        .join(Organization, Organization.id == PatientOrganization.organization_id)
        .where(PatientOrganization.patient_id.in_(patient_ids))
        .order_by(PatientOrganization.created_at)
    )
    for link, org_name in result.all():
        links[link.patient_id].append((link, org_name))
    return links


async def _get_visible_patient(
    patient_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> Patient:
    if not identity.organization_ids:
        raise HTTPException(status_code=404, detail="Patient not found")
    result = await session.execute(
        select(Patient)
        .where(Patient.id == patient_id)
        .where(Patient.id.in_(_visible_in(identity.organization_ids)))
    )
    patient = result.scalar_one_or_none()
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


def _to_db(resource: dict) -> dict:
    try:
        return patient_to_db(resource)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid birthDate")


async def search_patients(
    identity: IdentityContext,
    session: AsyncSession,
    organization: Optional[uuid.UUID] = None,
    name: Optional[str] = None,
    birthdate: Optional[str] = None,
) -> list[dict]:
    scope = identity.search_scope(organization)
    if not scope:
        return []

    query = select(Patient).where(Patient.id.in_(_visible_in(scope)))
    if birthdate:
        try:
            query = query.where(Patient.birth_date == parse_date(birthdate))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid birthdate parameter")
    result = await session.execute(query.order_by(Patient.created_at))
    patients = result.scalars().all()

    # JSON name arrays are matched in memory.
    if name:
        patients = [p for p in patients if human_name_matches(p.name, name)]

    links = await _organization_links([p.id for p in patients], session)
    return [patient_from_db(p, links.get(p.id, [])) for p in patients]


async def get_patient(
    patient_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> dict:
    patient = await _get_visible_patient(patient_id, identity, session)
    links = await _organization_links([patient.id], session)
    return patient_from_db(patient, links.get(patient.id, []))


async def create_patient(
    resource: dict, identity: IdentityContext, session: AsyncSession
) -> dict:
    """Create a patient linked to the caller's current organization as primary care."""
    organization_id = identity.current_organization_id
    patient = Patient(**_to_db(resource))
    session.add(patient)
    await session.flush()

    link = PatientOrganization(
        patient_id=patient.id,
        organization_id=organization_id,
        relationship="primary",
        primary_care=True,
        status=MembershipStatus.ACTIVE.value,
    )
    session.add(link)
    await session.flush()

    log.info("patient.created", patient_id=str(patient.id), org_id=str(organization_id))
    links = await _organization_links([patient.id], session)
    return patient_from_db(patient, links.get(patient.id, []))


async def update_patient(
    patient_id: uuid.UUID,
    resource: dict,
    identity: IdentityContext,
    session: AsyncSession,
) -> dict:
    patient = await _get_visible_patient(patient_id, identity, session)
    for column, value in _to_db(resource).items():
        setattr(patient, column, value)
    session.add(patient)
    await session.flush()
    await session.refresh(patient)

    log.info("patient.updated", patient_id=str(patient.id), user_id=str(identity.id))
    links = await _organization_links([patient.id], session)
    return patient_from_db(patient, links.get(patient.id, []))


async def assign_patient_organization(
    patient_id: uuid.UUID,
    organization_id: uuid.UUID,
    relationship: str,
    identity: IdentityContext,
    session: AsyncSession,
) -> None:
    """Link a visible patient to another of the caller's organizations."""
    if not identity.has_access(organization_id):
        raise HTTPException(status_code=403, detail="No access to target organization")

    await _get_visible_patient(patient_id, identity, session)

    result = await session.execute(
        select(PatientOrganization.id)
        .where(PatientOrganization.patient_id == patient_id)
        .where(PatientOrganization.organization_id == organization_id)
    )
    if result.first() is not None:
        raise HTTPException(
            status_code=409, detail="Patient already assigned to organization"
        )

    session.add(
        PatientOrganization(
            patient_id=patient_id,
            organization_id=organization_id,
            relationship=relationship,
            primary_care=False,
            status=MembershipStatus.ACTIVE.value,
        )
    )
    await session.flush()
    log.info(
        "patient.organization_assigned",
        patient_id=str(patient_id),
        org_id=str(organization_id),
    )

"""
Appointment service. Appointments belong to exactly one organization.
"""

from __future__ import annotations

import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from records_api.core.access import IdentityContext
from records_api.core.fhir import (
    appointment_from_db,
    appointment_to_db,
    appointment_update_values,
    parse_date,
)
from records_api.models.appointment import Appointment
from records_api.models.patient import Patient, PatientOrganization
from records_api.models.practitioner import Practitioner, PractitionerOrganization
from records_api.schemas.common import MembershipStatus

log = structlog.get_logger()


async def _get_visible_appointment(
    appointment_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> Appointment:
    appointment = await session.get(Appointment, appointment_id)
    if appointment is None or not identity.has_access(appointment.organization_id):
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


def _day_bounds(value: str) -> tuple[datetime, datetime]:
    try:
        day = parse_date(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date parameter")
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


async def search_appointments(
    identity: IdentityContext,
    session: AsyncSession,
    organization: Optional[uuid.UUID] = None,
    patient: Optional[uuid.UUID] = None,
    practitioner: Optional[uuid.UUID] = None,
    date: Optional[str] = None,
    status: Optional[str] = None,
) -> list[dict]:
    scope = identity.search_scope(organization)
    if not scope:
        return []

    query = select(Appointment).where(Appointment.organization_id.in_(scope))
    if patient is not None:
        query = query.where(Appointment.patient_id == patient)
    if practitioner is not None:
        query = query.where(Appointment.practitioner_id == practitioner)
    if date:
        start, end = _day_bounds(date)
        query = query.where(Appointment.start >= start, Appointment.start < end)
    if status:
        query = query.where(Appointment.status == status)

    result = await session.execute(query.order_by(Appointment.start))
    return [appointment_from_db(a) for a in result.scalars().all()]


async def get_appointment(
    appointment_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> dict:
    appointment = await _get_visible_appointment(appointment_id, identity, session)
    return appointment_from_db(appointment)


async def _in_current_organization(
    model, link_model, link_column, resource_id: uuid.UUID,
    organization_id: uuid.UUID, session: AsyncSession,
) -> bool:
    result = await session.execute(
        select(model.id)
        .join(link_model, link_column == model.id)
        .where(model.id == resource_id)
        .where(link_model.organization_id == organization_id)
        .where(link_model.status == MembershipStatus.ACTIVE.value)
    )
    return result.first() is not None


async def create_appointment(
    resource: dict,
    patient_id: uuid.UUID,
    practitioner_id: uuid.UUID,
    identity: IdentityContext,
    session: AsyncSession,
) -> dict:
    """Book an appointment in the caller's current organization.

    Both the patient and the practitioner must be linked to that organization.
    """
    organization_id = identity.current_organization_id

    if not await _in_current_organization(
        Patient, PatientOrganization, PatientOrganization.patient_id,
        patient_id, organization_id, session,
    ):
        raise HTTPException(status_code=404, detail="Patient not found or no access")

    if not await _in_current_organization(
        Practitioner, PractitionerOrganization, PractitionerOrganization.practitioner_id,
        practitioner_id, organization_id, session,
    ):
        raise HTTPException(status_code=404, detail="Practitioner not found or no access")

    try:
        values = appointment_to_db(resource, patient_id, practitioner_id, organization_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid start or end")

    appointment = Appointment(**values)
    session.add(appointment)
    await session.flush()

    log.info(
        "appointment.created",
        appointment_id=str(appointment.id),
        org_id=str(organization_id),
    )
    return appointment_from_db(appointment)


async def update_appointment(
    appointment_id: uuid.UUID,
    resource: dict,
    identity: IdentityContext,
    session: AsyncSession,
) -> dict:
    """Partial update: only fields present in the body change."""
    appointment = await _get_visible_appointment(appointment_id, identity, session)
    try:
        values = appointment_update_values(resource)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid start or end")

    for column, value in values.items():
        setattr(appointment, column, value)
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)

    log.info(
        "appointment.updated",
        appointment_id=str(appointment.id),
        fields=sorted(values),
    )
    return appointment_from_db(appointment)


async def cancel_appointment(
    appointment_id: uuid.UUID, identity: IdentityContext, session: AsyncSession
) -> None:
    """DELETE never removes the row; it marks the appointment cancelled."""
    appointment = await _get_visible_appointment(appointment_id, identity, session)
    appointment.status = "cancelled"
    session.add(appointment)
    await session.flush()
    log.info("appointment.cancelled", appointment_id=str(appointment.id))

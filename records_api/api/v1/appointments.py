"""
FHIR Appointment endpoints.

GET    /Appointment        — Search (patient, practitioner, date, status)
GET    /Appointment/{id}   — Read
POST   /Appointment        — Book in the current organization
PUT    /Appointment/{id}   — Partial update
DELETE /Appointment/{id}   — Cancel
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.core.access import IdentityContext
from records_api.core.auth import get_identity_context, require_organization_scope
from records_api.core.database import get_session
from records_api.core.fhir import fhir_base_url, search_bundle
from records_api.schemas.fhir import AppointmentCreate, AppointmentStatus, AppointmentUpdate
from records_api.services import appointments as appointment_service

router = APIRouter()


@router.get("/Appointment")
async def search_appointments(
    request: Request,
    organization: Optional[uuid.UUID] = None,
    patient: Optional[uuid.UUID] = None,
    practitioner: Optional[uuid.UUID] = None,
    date: Optional[str] = None,
    status: Optional[AppointmentStatus] = None,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    resources = await appointment_service.search_appointments(
        identity,
        session,
        organization=organization,
        patient=patient,
        practitioner=practitioner,
        date=date,
        status=status,
    )
    return search_bundle(fhir_base_url(str(request.base_url)), resources)


@router.get("/Appointment/{appointment_id}")
async def read_appointment(
    appointment_id: uuid.UUID,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await appointment_service.get_appointment(appointment_id, identity, session)


@router.post("/Appointment", status_code=201)
async def create_appointment(
    body: AppointmentCreate,
    identity: IdentityContext = Depends(require_organization_scope),
    session: AsyncSession = Depends(get_session),
):
    resource = body.model_dump(exclude_none=True, exclude={"patientId", "practitionerId"})
    return await appointment_service.create_appointment(
        resource, body.patientId, body.practitionerId, identity, session
    )


@router.put("/Appointment/{appointment_id}")
async def update_appointment(
    appointment_id: uuid.UUID,
    body: AppointmentUpdate,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await appointment_service.update_appointment(
        appointment_id, body.model_dump(exclude_none=True), identity, session
    )


@router.delete("/Appointment/{appointment_id}", status_code=204)
async def cancel_appointment(
    appointment_id: uuid.UUID,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    await appointment_service.cancel_appointment(appointment_id, identity, session)
    return Response(status_code=204)

"""
FHIR Patient endpoints.

GET  /Patient                              — Search (organization, name, birthdate)
GET  /Patient/{id}                         — Read
POST /Patient                              — Create in the current organization
PUT  /Patient/{id}                         — Update
POST /Patient/{id}/assign-organization     — Link to another organization
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.core.access import IdentityContext
from records_api.core.auth import get_identity_context, require_organization_scope
from records_api.core.database import get_session
from records_api.core.fhir import fhir_base_url, informational_outcome, search_bundle
from records_api.schemas.fhir import PatientAssignment, PatientResource
from records_api.services import patients as patient_service

router = APIRouter()


@router.get("/Patient")
async def search_patients(
    request: Request,
    organization: Optional[uuid.UUID] = None,
    name: Optional[str] = None,
    birthdate: Optional[str] = None,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    resources = await patient_service.search_patients(
        identity, session, organization=organization, name=name, birthdate=birthdate
    )
    return search_bundle(fhir_base_url(str(request.base_url)), resources)


@router.get("/Patient/{patient_id}")
async def read_patient(
    patient_id: uuid.UUID,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await patient_service.get_patient(patient_id, identity, session)


@router.post("/Patient", status_code=201)
async def create_patient(
    body: PatientResource,
    identity: IdentityContext = Depends(require_organization_scope),
    session: AsyncSession = Depends(get_session),
):
    return await patient_service.create_patient(
        body.model_dump(exclude_none=True), identity, session
    )


@router.put("/Patient/{patient_id}")
async def update_patient(
    patient_id: uuid.UUID,
    body: PatientResource,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await patient_service.update_patient(
        patient_id, body.model_dump(exclude_none=True), identity, session
    )


@router.post("/Patient/{patient_id}/assign-organization", status_code=201)
async def assign_organization(
    patient_id: uuid.UUID,
    body: PatientAssignment,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    await patient_service.assign_patient_organization(
        patient_id, body.organizationId, body.relationship, identity, session
    )
    return informational_outcome("Patient successfully assigned to organization")

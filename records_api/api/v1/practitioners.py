"""
FHIR Practitioner endpoints.

GET  /Practitioner                           — Search (organization, name, specialty)
GET  /Practitioner/{id}                      — Read
POST /Practitioner                           — Create in the current organization
PUT  /Practitioner/{id}                      — Update
POST /Practitioner/{id}/assign-organization  — Affiliate with another organization
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
from records_api.schemas.fhir import PractitionerAssignment, PractitionerResource
from records_api.services import practitioners as practitioner_service

router = APIRouter()


@router.get("/Practitioner")
async def search_practitioners(
    request: Request,
    organization: Optional[uuid.UUID] = None,
    name: Optional[str] = None,
    specialty: Optional[str] = None,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    resources = await practitioner_service.search_practitioners(
        identity, session, organization=organization, name=name, specialty=specialty
    )
    return search_bundle(fhir_base_url(str(request.base_url)), resources)


@router.get("/Practitioner/{practitioner_id}")
async def read_practitioner(
    practitioner_id: uuid.UUID,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await practitioner_service.get_practitioner(practitioner_id, identity, session)


@router.post("/Practitioner", status_code=201)
async def create_practitioner(
    body: PractitionerResource,
    identity: IdentityContext = Depends(require_organization_scope),
    session: AsyncSession = Depends(get_session),
):
    return await practitioner_service.create_practitioner(
        body.model_dump(exclude_none=True), identity, session
    )


@router.put("/Practitioner/{practitioner_id}")
async def update_practitioner(
    practitioner_id: uuid.UUID,
    body: PractitionerResource,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await practitioner_service.update_practitioner(
        practitioner_id, body.model_dump(exclude_none=True), identity, session
    )


@router.post("/Practitioner/{practitioner_id}/assign-organization", status_code=201)
async def assign_organization(
    practitioner_id: uuid.UUID,
    body: PractitionerAssignment,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    await practitioner_service.assign_practitioner_organization(
        practitioner_id,
        body.organizationId,
        body.role,
        body.permissions,
        identity,
        session,
    )
    return informational_outcome("Practitioner successfully assigned to organization")

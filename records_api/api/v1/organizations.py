"""
FHIR Organization endpoints.

GET  /Organization        — Organizations the caller belongs to
GET  /Organization/{id}   — Read (members only)
POST /Organization        — Create (super admin)
PUT  /Organization/{id}   — Update (organization admin)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.core.access import IdentityContext
from records_api.core.auth import get_identity_context, require_super_admin
from records_api.core.database import get_session
from records_api.core.fhir import fhir_base_url, search_bundle
from records_api.schemas.fhir import OrganizationResource
from records_api.services import organizations as org_service

router = APIRouter()


@router.get("/Organization")
async def search_organizations(
    request: Request,
    name: Optional[str] = None,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    resources = await org_service.search_organizations(identity, session, name=name)
    return search_bundle(fhir_base_url(str(request.base_url)), resources)


@router.get("/Organization/{organization_id}")
async def read_organization(
    organization_id: uuid.UUID,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.get_organization(organization_id, identity, session)


@router.post("/Organization", status_code=201)
async def create_organization(
    body: OrganizationResource,
    identity: IdentityContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.create_organization(
        body.model_dump(exclude_none=True), identity, session
    )


@router.put("/Organization/{organization_id}")
async def update_organization(
    organization_id: uuid.UUID,
    body: OrganizationResource,
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.update_organization(
        organization_id, body.model_dump(exclude_none=True), identity, session
    )

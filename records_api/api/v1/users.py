"""
User organization endpoints.

GET  /organizations        — Active memberships of the caller
POST /switch-organization  — Validate a change of working organization
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.core.access import IdentityContext
from records_api.core.auth import get_identity_context
from records_api.core.database import get_session
from records_api.schemas.auth import (
    SwitchOrganizationRequest,
    SwitchOrganizationResponse,
    UserOrganizationsResponse,
)
from records_api.services import users as user_service

router = APIRouter()


@router.get("/organizations", response_model=UserOrganizationsResponse)
async def list_organizations(
    identity: IdentityContext = Depends(get_identity_context),
    session: AsyncSession = Depends(get_session),
):
    organizations = await user_service.list_user_organizations(identity, session)
    return UserOrganizationsResponse(organizations=organizations)


@router.post("/switch-organization", response_model=SwitchOrganizationResponse)
async def switch_organization(
    body: SwitchOrganizationRequest,
    identity: IdentityContext = Depends(get_identity_context),
):
    """The switch is client-side: send the id as x-organization-id from now on."""
    current = user_service.switch_organization(identity, body.organization_id)
    return SwitchOrganizationResponse(
        message="Organization context switched successfully",
        current_organization=current,
    )

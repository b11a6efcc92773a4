"""Authentication and user-organization schemas."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .common import UserRole


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(_CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    role: UserRole
    organization_id: Optional[uuid.UUID] = Field(default=None, alias="organizationId")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class SwitchOrganizationRequest(_CamelModel):
    organization_id: uuid.UUID = Field(alias="organizationId")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrganizationSummary(BaseModel):
    id: uuid.UUID
    name: str
    role: str
    permissions: Optional[dict] = None


class LoginUser(_CamelModel):
    id: uuid.UUID
    email: str
    role: str
    primary_organization_id: Optional[uuid.UUID] = Field(
        default=None, alias="primaryOrganizationId"
    )
    organizations: list[OrganizationSummary]


class LoginResponse(BaseModel):
    token: str
    user: LoginUser


class TokenResponse(BaseModel):
    token: str


class MeResponse(_CamelModel):
    id: uuid.UUID
    email: str
    role: str
    primary_organization_id: Optional[uuid.UUID] = Field(
        default=None, alias="primaryOrganizationId"
    )
    current_organization_id: Optional[uuid.UUID] = Field(
        default=None, alias="currentOrganizationId"
    )
    organizations: list[OrganizationSummary]


class UserOrganization(_CamelModel):
    id: uuid.UUID
    name: str
    type: Optional[str] = None
    identifier: Optional[str] = None
    role: str
    permissions: Optional[dict] = None
    is_primary: bool = Field(alias="isPrimary")


class UserOrganizationsResponse(BaseModel):
    organizations: list[UserOrganization]


class SwitchOrganizationResponse(_CamelModel):
    message: str
    current_organization: uuid.UUID = Field(alias="currentOrganization")

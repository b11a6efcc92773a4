"""User-Organization access (join table)."""

from typing import Optional
import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class UserOrganizationAccess(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "user_organization_access"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_user_organization"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    role: str = Field(nullable=False)  # admin | super_admin | org_admin | practitioner | staff | readonly
    status: str = Field(default="active", nullable=False)  # active | inactive | suspended
    permissions: Optional[dict] = Field(default=None, sa_type=JSONType)

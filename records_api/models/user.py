"""User model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, nullable=False, index=True)
    password_hash: str = Field(nullable=False)
    role: str = Field(nullable=False)  # super_admin | org_admin | practitioner | staff | readonly
    active: bool = Field(default=True, nullable=False)
    primary_organization_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="organizations.id"
    )
    last_login: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))

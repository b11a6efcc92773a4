"""Audit log model (append-only)."""

from datetime import datetime, timezone
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, UUIDMixin


class AuditLog(UUIDMixin, SQLModel, table=True):
    __tablename__ = "audit_logs"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    organization_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="organizations.id", index=True
    )
    resource_type: str = Field(nullable=False)
    resource_id: str = Field(nullable=False)
    action: str = Field(nullable=False)  # READ | CREATE | UPDATE | DELETE | UNKNOWN
    changes: Optional[dict] = Field(default=None, sa_type=JSONType)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )

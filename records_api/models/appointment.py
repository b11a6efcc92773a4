"""Appointment model (organization-scoped)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class Appointment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "appointments"

    identifier: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    status: str = Field(nullable=False)  # proposed | booked | fulfilled | cancelled | ...
    service_type: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    specialty: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    appointment_type: Optional[dict] = Field(default=None, sa_type=JSONType)
    reason_code: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    description: Optional[str] = None
    start: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True), index=True)
    end: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    minutes_duration: Optional[int] = None
    comment: Optional[str] = None
    patient_id: uuid.UUID = Field(foreign_key="patients.id", nullable=False, index=True)
    practitioner_id: uuid.UUID = Field(foreign_key="practitioners.id", nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)

"""Patient model and its organization links."""

from datetime import date
from typing import Optional
import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class Patient(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "patients"

    identifier: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    active: bool = Field(default=True, nullable=False)
    name: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    telecom: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    address: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    marital_status: Optional[dict] = Field(default=None, sa_type=JSONType)
    contact: list = Field(default_factory=list, sa_type=JSONType, nullable=False)


class PatientOrganization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "patient_organizations"
    __table_args__ = (
        UniqueConstraint("patient_id", "organization_id", name="uq_patient_organization"),
    )

    patient_id: uuid.UUID = Field(foreign_key="patients.id", nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    relationship: str = Field(default="primary", nullable=False)  # primary | specialist | ...
    primary_care: bool = Field(default=False, nullable=False)
    status: str = Field(default="active", nullable=False)

"""Practitioner model and its organization affiliations."""

from datetime import date
from typing import Optional
import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


def _today() -> date:
    return date.today()


class Practitioner(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "practitioners"

    identifier: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    active: bool = Field(default=True, nullable=False)
    name: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    telecom: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    address: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    qualification: list = Field(default_factory=list, sa_type=JSONType, nullable=False)


class PractitionerOrganization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "practitioner_organizations"
    __table_args__ = (
        UniqueConstraint(
            "practitioner_id", "organization_id", name="uq_practitioner_organization"
        ),
    )

    practitioner_id: uuid.UUID = Field(foreign_key="practitioners.id", nullable=False, index=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    role: str = Field(default="primary", nullable=False)  # primary | consulting | ...
    permissions: Optional[dict] = Field(default=None, sa_type=JSONType)
    status: str = Field(default="active", nullable=False)
    start_date: date = Field(default_factory=_today, nullable=False)

"""Organization model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    identifier: str = Field(unique=True, nullable=False, index=True)
    name: str = Field(nullable=False, index=True)
    type: Optional[str] = None  # hospital | clinic | ...
    active: bool = Field(default=True, nullable=False)
    telecom: list = Field(default_factory=list, sa_type=JSONType, nullable=False)
    address: list = Field(default_factory=list, sa_type=JSONType, nullable=False)

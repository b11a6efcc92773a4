"""
FHIR resource request bodies.

Only the fields the API reads are declared; anything else a client sends is
kept (`extra="allow"`) and ignored by the transforms.
"""

from __future__ import annotations

import uuid
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class FHIRResource(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    meta: Optional[dict] = None


class PatientResource(FHIRResource):
    resourceType: Literal["Patient"]
    name: list[dict[str, Any]]
    active: Optional[bool] = None
    identifier: Optional[list[dict[str, Any]]] = None
    telecom: Optional[list[dict[str, Any]]] = None
    gender: Optional[str] = None
    birthDate: Optional[str] = None
    address: Optional[list[dict[str, Any]]] = None
    maritalStatus: Optional[dict[str, Any]] = None
    contact: Optional[list[dict[str, Any]]] = None


class PractitionerResource(FHIRResource):
    resourceType: Literal["Practitioner"]
    name: list[dict[str, Any]]
    active: Optional[bool] = None
    identifier: Optional[list[dict[str, Any]]] = None
    telecom: Optional[list[dict[str, Any]]] = None
    address: Optional[list[dict[str, Any]]] = None
    gender: Optional[str] = None
    birthDate: Optional[str] = None
    qualification: Optional[list[dict[str, Any]]] = None


class OrganizationResource(FHIRResource):
    resourceType: Literal["Organization"]
    name: str = Field(min_length=1)
    active: Optional[bool] = None
    identifier: Optional[list[dict[str, Any]]] = None
    type: Optional[list[dict[str, Any]]] = None
    telecom: Optional[list[dict[str, Any]]] = None
    address: Optional[list[dict[str, Any]]] = None


AppointmentStatus = Literal[
    "proposed",
    "pending",
    "booked",
    "arrived",
    "fulfilled",
    "cancelled",
    "noshow",
    "entered-in-error",
    "checked-in",
    "waitlist",
]


class AppointmentResource(FHIRResource):
    resourceType: Literal["Appointment"] = "Appointment"
    status: AppointmentStatus
    identifier: Optional[list[dict[str, Any]]] = None
    serviceType: Optional[list[dict[str, Any]]] = None
    specialty: Optional[list[dict[str, Any]]] = None
    appointmentType: Optional[dict[str, Any]] = None
    reasonCode: Optional[list[dict[str, Any]]] = None
    description: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    minutesDuration: Optional[int] = Field(default=None, ge=0)
    comment: Optional[str] = None


class AppointmentCreate(AppointmentResource):
    patientId: uuid.UUID
    practitionerId: uuid.UUID


class AppointmentUpdate(FHIRResource):
    resourceType: Literal["Appointment"] = "Appointment"
    status: Optional[AppointmentStatus] = None
    description: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    minutesDuration: Optional[int] = Field(default=None, ge=0)
    comment: Optional[str] = None


class PatientAssignment(BaseModel):
    organizationId: uuid.UUID
    relationship: str = "specialist"


class PractitionerAssignment(BaseModel):
    organizationId: uuid.UUID
    role: str = "consulting"
    permissions: Optional[dict[str, Any]] = None

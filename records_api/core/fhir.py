"""
FHIR shape helpers.

Pure mapping functions between FHIR JSON resources and table rows, plus the
OperationOutcome and Bundle envelopes. Nothing here touches the database.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from records_api.core.config import get_settings
from records_api.models.appointment import Appointment
from records_api.models.organization import Organization
from records_api.models.patient import Patient, PatientOrganization
from records_api.models.practitioner import Practitioner, PractitionerOrganization

settings = get_settings()


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_operation_outcome(
    severity: str,
    code: str,
    diagnostics: str,
    details: Optional[dict] = None,
) -> dict:
    """Build a single-issue FHIR OperationOutcome."""
    issue: dict[str, Any] = {
        "severity": severity,
        "code": code,
        "diagnostics": diagnostics,
    }
    if details:
        issue["details"] = details
    return {
        "resourceType": "OperationOutcome",
        "id": str(uuid.uuid4()),
        "meta": {"lastUpdated": _now_iso()},
        "issue": [issue],
    }


def informational_outcome(diagnostics: str) -> dict:
    return {
        "resourceType": "OperationOutcome",
        "issue": [
            {
                "severity": "information",
                "code": "informational",
                "diagnostics": diagnostics,
            }
        ],
    }


def create_bundle(
    bundle_type: str, entries: list[dict], total: Optional[int] = None
) -> dict:
    """Build a FHIR Bundle. `total` defaults to the number of entries."""
    return {
        "resourceType": "Bundle",
        "id": str(uuid.uuid4()),
        "meta": {"lastUpdated": _now_iso()},
        "type": bundle_type,
        "total": total if total is not None else len(entries),
        "entry": entries,
    }


def bundle_entry(base_url: str, resource: dict) -> dict:
    return {
        "fullUrl": f"{base_url.rstrip('/')}/{resource['resourceType']}/{resource['id']}",
        "resource": resource,
    }


def fhir_base_url(server_url: str) -> str:
    """Absolute FHIR base for fullUrl values, from the request's base URL."""
    return f"{server_url.rstrip('/')}{settings.fhir_base_path}"


def search_bundle(base_url: str, resources: list[dict]) -> dict:
    return create_bundle("searchset", [bundle_entry(base_url, r) for r in resources])


# ---------------------------------------------------------------------------
# Scalar conversions
# ---------------------------------------------------------------------------

def format_instant(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 instant; naive values (SQLite) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a FHIR date (YYYY-MM-DD). Raises ValueError on bad input."""
    if not value:
        return None
    return date.fromisoformat(value[:10])


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """Parse a FHIR instant/dateTime into an aware UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def human_name_matches(names: Optional[list], term: str) -> bool:
    """Case-insensitive substring match against HumanName family/given parts."""
    needle = term.lower()
    for name in names or []:
        if not isinstance(name, dict):
            continue
        family = name.get("family") or ""
        if needle in family.lower():
            return True
        if any(needle in (given or "").lower() for given in name.get("given") or []):
            return True
    return False


def codeable_concepts_contain(concepts: Optional[list], code: str) -> bool:
    """True if any coding in the concepts (or a qualification's `code`) has this code."""
    for concept in concepts or []:
        if not isinstance(concept, dict):
            continue
        inner = concept.get("code") if isinstance(concept.get("code"), dict) else concept
        for coding in inner.get("coding") or []:
            if coding.get("code") == code:
                return True
    return False


def _meta(row) -> dict:
    return {"lastUpdated": format_instant(row.updated_at), "versionId": "1"}


def _drop_none(resource: dict) -> dict:
    return {k: v for k, v in resource.items() if v is not None}


# ---------------------------------------------------------------------------
# Patient
# ---------------------------------------------------------------------------

def patient_from_db(
    patient: Patient,
    organizations: Optional[list[tuple[PatientOrganization, Optional[str]]]] = None,
) -> dict:
    """Patient row → FHIR Patient.

    `organizations` is a list of (link, organization name) pairs; when given,
    the links are exposed through the patient-organizations extension.
    """
    resource = {
        "resourceType": "Patient",
        "id": str(patient.id),
        "meta": _meta(patient),
        "identifier": patient.identifier,
        "active": patient.active,
        "name": patient.name,
        "telecom": patient.telecom,
        "gender": patient.gender,
        "birthDate": format_date(patient.birth_date),
        "address": patient.address,
        "maritalStatus": patient.marital_status,
        "contact": patient.contact,
    }
    if organizations is not None:
        resource["extension"] = [
            {
                "url": f"{settings.fhir_extension_base}/patient-organizations",
                "extension": [
                    {
                        "url": "organization",
                        "valueReference": {
                            "reference": f"Organization/{link.organization_id}",
                            "display": org_name,
                        },
                        "extension": [
                            {"url": "relationship", "valueString": link.relationship},
                            {"url": "primaryCare", "valueBoolean": link.primary_care},
                            {"url": "status", "valueString": link.status},
                        ],
                    }
                    for link, org_name in organizations
                ],
            }
        ]
    return _drop_none(resource)


def patient_to_db(resource: dict) -> dict:
    """FHIR Patient → column values."""
    return {
        "identifier": resource.get("identifier") or [],
        "active": resource.get("active", True),
        "name": resource.get("name") or [],
        "telecom": resource.get("telecom") or [],
        "gender": resource.get("gender"),
        "birth_date": parse_date(resource.get("birthDate")),
        "address": resource.get("address") or [],
        "marital_status": resource.get("maritalStatus"),
        "contact": resource.get("contact") or [],
    }


# ---------------------------------------------------------------------------
# Practitioner
# ---------------------------------------------------------------------------

def practitioner_from_db(
    practitioner: Practitioner,
    organizations: Optional[list[tuple[PractitionerOrganization, Optional[str]]]] = None,
) -> dict:
    resource = {
        "resourceType": "Practitioner",
        "id": str(practitioner.id),
        "meta": _meta(practitioner),
        "identifier": practitioner.identifier,
        "active": practitioner.active,
        "name": practitioner.name,
        "telecom": practitioner.telecom,
        "address": practitioner.address,
        "gender": practitioner.gender,
        "birthDate": format_date(practitioner.birth_date),
        "qualification": practitioner.qualification,
    }
    if organizations is not None:
        resource["extension"] = [
            {
                "url": f"{settings.fhir_extension_base}/practitioner-organizations",
                "extension": [
                    {
                        "url": "organization",
                        "valueReference": {
                            "reference": f"Organization/{link.organization_id}",
                            "display": org_name,
                        },
                        "extension": [
                            {"url": "role", "valueString": link.role},
                            {"url": "status", "valueString": link.status},
                            {"url": "startDate", "valueDate": format_date(link.start_date)},
                        ],
                    }
                    for link, org_name in organizations
                ],
            }
        ]
    return _drop_none(resource)


def practitioner_to_db(resource: dict) -> dict:
    return {
        "identifier": resource.get("identifier") or [],
        "active": resource.get("active", True),
        "name": resource.get("name") or [],
        "telecom": resource.get("telecom") or [],
        "address": resource.get("address") or [],
        "gender": resource.get("gender"),
        "birth_date": parse_date(resource.get("birthDate")),
        "qualification": resource.get("qualification") or [],
    }


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

def organization_from_db(organization: Organization) -> dict:
    return {
        "resourceType": "Organization",
        "id": str(organization.id),
        "meta": _meta(organization),
        "identifier": [{"value": organization.identifier}] if organization.identifier else [],
        "active": organization.active,
        "name": organization.name,
        "type": [{"text": organization.type}] if organization.type else [],
        "telecom": organization.telecom or [],
        "address": organization.address or [],
    }


def organization_to_db(resource: dict) -> dict:
    identifiers = resource.get("identifier") or []
    types = resource.get("type") or []
    return {
        "identifier": (identifiers[0].get("value") if identifiers else None) or str(uuid.uuid4()),
        "active": resource.get("active", True),
        "name": resource.get("name") or "",
        "type": types[0].get("text") if types else None,
        "telecom": resource.get("telecom") or [],
        "address": resource.get("address") or [],
    }


# ---------------------------------------------------------------------------
# Appointment
# ---------------------------------------------------------------------------

def appointment_from_db(appointment: Appointment) -> dict:
    return _drop_none({
        "resourceType": "Appointment",
        "id": str(appointment.id),
        "meta": _meta(appointment),
        "identifier": appointment.identifier or [],
        "status": appointment.status,
        "serviceType": appointment.service_type or [],
        "specialty": appointment.specialty or [],
        "appointmentType": appointment.appointment_type,
        "reasonCode": appointment.reason_code or [],
        "description": appointment.description,
        "start": format_instant(appointment.start),
        "end": format_instant(appointment.end),
        "minutesDuration": appointment.minutes_duration,
        "comment": appointment.comment,
        "participant": [
            {"actor": {"reference": f"Patient/{appointment.patient_id}"}, "status": "accepted"},
            {
                "actor": {"reference": f"Practitioner/{appointment.practitioner_id}"},
                "status": "accepted",
            },
        ],
    })


def appointment_to_db(
    resource: dict,
    patient_id: uuid.UUID,
    practitioner_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> dict:
    now = datetime.now(timezone.utc)
    return {
        "identifier": resource.get("identifier") or [],
        "status": resource.get("status"),
        "service_type": resource.get("serviceType") or [],
        "specialty": resource.get("specialty") or [],
        "appointment_type": resource.get("appointmentType"),
        "reason_code": resource.get("reasonCode") or [],
        "description": resource.get("description"),
        "start": parse_instant(resource.get("start")) or now,
        "end": parse_instant(resource.get("end")) or now,
        "minutes_duration": resource.get("minutesDuration"),
        "comment": resource.get("comment"),
        "patient_id": patient_id,
        "practitioner_id": practitioner_id,
        "organization_id": organization_id,
    }


# Fields a PUT /Appointment/{id} may change.
APPOINTMENT_UPDATE_FIELDS = {
    "status": "status",
    "description": "description",
    "start": "start",
    "end": "end",
    "minutesDuration": "minutes_duration",
    "comment": "comment",
}


def appointment_update_values(resource: dict) -> dict:
    """Partial update: only fields present (and not null) in the body."""
    values = {}
    for fhir_key, column in APPOINTMENT_UPDATE_FIELDS.items():
        value = resource.get(fhir_key)
        if value is None:
            continue
        if column in ("start", "end"):
            value = parse_instant(value)
        values[column] = value
    return values

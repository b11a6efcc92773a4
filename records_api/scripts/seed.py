"""
Seed a development database: a super admin, sample organizations, and
sample practitioners and patients linked to them.

Safe to run repeatedly; existing rows are reused.

    python -m records_api.scripts.seed --email admin@hospital.com --password '...'
"""

import argparse
import asyncio
from datetime import date

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from records_api.core.access import ensure_membership
from records_api.core.auth import hash_password
from records_api.core.database import get_session_context, init_db
from records_api.core.logging import configure_logging
from records_api.models.organization import Organization
from records_api.models.patient import Patient, PatientOrganization
from records_api.models.practitioner import Practitioner, PractitionerOrganization
from records_api.models.user import User
from records_api.schemas.common import SUPER_ADMIN_MEMBERSHIP_ROLE, UserRole

log = structlog.get_logger()

ORGANIZATIONS = [
    {
        "identifier": "general-hospital-001",
        "name": "General Hospital",
        "type": "hospital",
        "address": [{
            "use": "work",
            "line": ["123 Hospital Drive"],
            "city": "Medical City",
            "state": "CA",
            "postalCode": "90210",
            "country": "USA",
        }],
        "telecom": [
            {"system": "phone", "value": "+1-555-123-4567", "use": "work"},
            {"system": "email", "value": "info@generalhospital.com", "use": "work"},
        ],
    },
    {
        "identifier": "family-clinic-002",
        "name": "Family Health Clinic",
        "type": "clinic",
        "address": [{
            "use": "work",
            "line": ["456 Wellness Street"],
            "city": "Health Town",
            "state": "CA",
            "postalCode": "90211",
            "country": "USA",
        }],
        "telecom": [{"system": "phone", "value": "+1-555-987-6543", "use": "work"}],
    },
    {
        "identifier": "specialty-center-003",
        "name": "Specialty Medical Center",
        "type": "clinic",
        "address": [{
            "use": "work",
            "line": ["789 Specialist Avenue"],
            "city": "Expert City",
            "state": "CA",
            "postalCode": "90212",
            "country": "USA",
        }],
        "telecom": [{"system": "phone", "value": "+1-555-456-7890", "use": "work"}],
    },
]

# (npi, family, given, gender, birth date, specialty code, specialty display, org index)
PRACTITIONERS = [
    ("1234567890", "Johnson", "Sarah", "female", date(1975, 8, 22), "207R00000X", "Internal Medicine", 0),
    ("0987654321", "Chen", "Michael", "male", date(1980, 3, 15), "208D00000X", "General Practice", 1),
    ("1122334455", "Patel", "Priya", "female", date(1982, 11, 5), "207RC0000X", "Cardiovascular Disease", 2),
]

# (mrn, family, given, gender, birth date, org index)
PATIENTS = [
    ("MRN-0001", "Smith", "John", "male", date(1985, 5, 15), 0),
    ("MRN-0002", "Garcia", "Maria", "female", date(1992, 9, 30), 1),
    ("MRN-0003", "Brown", "Robert", "male", date(1958, 1, 12), 2),
]


async def ensure_admin(session: AsyncSession, email: str, password: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        print(f"User {email} already exists.")
        return user
    user = User(
        email=email,
        password_hash=hash_password(password),
        role=UserRole.SUPER_ADMIN.value,
        active=True,
    )
    session.add(user)
    await session.flush()
    print(f"Created super admin: {email}")
    return user


async def ensure_organizations(session: AsyncSession) -> list[Organization]:
    organizations = []
    for data in ORGANIZATIONS:
        result = await session.execute(
            select(Organization).where(Organization.identifier == data["identifier"])
        )
        org = result.scalar_one_or_none()
        if org:
            print(f"Organization {org.name} already exists.")
        else:
            org = Organization(active=True, **data)
            session.add(org)
            await session.flush()
            print(f"Created organization: {org.name}")
        organizations.append(org)
    return organizations


async def ensure_practitioners(session: AsyncSession, organizations: list[Organization]) -> None:
    for npi, family, given, gender, birth_date, code, display, org_index in PRACTITIONERS:
        identifier = [{"use": "official", "system": "http://hl7.org/fhir/sid/us-npi", "value": npi}]
        result = await session.execute(select(Practitioner))
        if any(p.identifier == identifier for p in result.scalars().all()):
            continue
        practitioner = Practitioner(
            identifier=identifier,
            name=[{"use": "official", "family": family, "given": [given], "prefix": ["Dr."]}],
            gender=gender,
            birth_date=birth_date,
            qualification=[{
                "code": {
                    "coding": [{
                        "system": "http://nucc.org/provider-taxonomy",
                        "code": code,
                        "display": display,
                    }]
                }
            }],
        )
        session.add(practitioner)
        await session.flush()
        session.add(
            PractitionerOrganization(
                practitioner_id=practitioner.id,
                organization_id=organizations[org_index].id,
                role="primary",
            )
        )
        print(f"Created practitioner: Dr. {given} {family}")


async def ensure_patients(session: AsyncSession, organizations: list[Organization]) -> None:
    for mrn, family, given, gender, birth_date, org_index in PATIENTS:
        identifier = [{"use": "usual", "system": "http://hospital.example.org/mrn", "value": mrn}]
        result = await session.execute(select(Patient))
        if any(p.identifier == identifier for p in result.scalars().all()):
            continue
        patient = Patient(
            identifier=identifier,
            name=[{"use": "official", "family": family, "given": [given]}],
            gender=gender,
            birth_date=birth_date,
        )
        session.add(patient)
        await session.flush()
        session.add(
            PatientOrganization(
                patient_id=patient.id,
                organization_id=organizations[org_index].id,
                relationship="primary",
                primary_care=True,
            )
        )
        print(f"Created patient: {given} {family}")


async def seed(email: str, password: str) -> None:
    await init_db()
    async with get_session_context() as session:
        admin = await ensure_admin(session, email, password)
        organizations = await ensure_organizations(session)

        for org in organizations:
            if await ensure_membership(session, admin.id, org.id, SUPER_ADMIN_MEMBERSHIP_ROLE):
                print(f"Granted {email} access to {org.name}")

        if admin.primary_organization_id is None and organizations:
            admin.primary_organization_id = organizations[0].id
            session.add(admin)

        await ensure_practitioners(session, organizations)
        await ensure_patients(session, organizations)

    log.info("seed.completed", admin=email, organizations=len(organizations))
    print("Seed complete.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the healthcare records database.")
    parser.add_argument("--email", default="admin@hospital.com", help="Super admin email")
    parser.add_argument("--password", required=True, help="Super admin password")
    args = parser.parse_args()

    configure_logging("info", fmt="console")
    asyncio.run(seed(args.email, args.password))


if __name__ == "__main__":
    main()

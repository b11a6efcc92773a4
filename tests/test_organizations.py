"""
Integration tests for FHIR Organization endpoints.
"""

from __future__ import annotations

import uuid

from sqlmodel import select

from conftest import auth_headers
from records_api.core.database import async_session_factory
from records_api.models.user_org import UserOrganizationAccess

ORG_BODY = {
    "resourceType": "Organization",
    "name": "Northside Clinic",
    "identifier": [{"value": "northside-001"}],
    "type": [{"text": "clinic"}],
    "telecom": [{"system": "phone", "value": "+1-555-000-1111"}],
}


class TestOrganizationSearch:
    async def test_search_returns_only_member_orgs(self, client, make_org, make_user, grant):
        mine = await make_org("Mine")
        await make_org("Not Mine")
        user = await make_user()
        await grant(user, mine)

        response = await client.get("/fhir/Organization", headers=auth_headers(user))
        assert response.status_code == 200
        bundle = response.json()
        assert bundle["resourceType"] == "Bundle"
        assert bundle["type"] == "searchset"
        assert bundle["total"] == 1
        entry = bundle["entry"][0]
        assert entry["resource"]["id"] == str(mine.id)
        assert entry["fullUrl"] == f"http://test/fhir/Organization/{mine.id}"

    async def test_search_by_name(self, client, make_org, make_user, grant):
        a = await make_org("General Hospital")
        b = await make_org("Family Clinic")
        user = await make_user()
        await grant(user, a)
        await grant(user, b)

        response = await client.get(
            "/fhir/Organization", params={"name": "clinic"}, headers=auth_headers(user)
        )
        assert [e["resource"]["name"] for e in response.json()["entry"]] == ["Family Clinic"]

    async def test_search_without_memberships_is_empty(self, client, make_org, make_user):
        await make_org()
        user = await make_user(role="staff")
        response = await client.get("/fhir/Organization", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["total"] == 0


class TestOrganizationRead:
    async def test_read_member_org(self, client, clinic_member):
        org, _, headers = clinic_member
        response = await client.get(f"/fhir/Organization/{org.id}", headers=headers)
        assert response.status_code == 200
        resource = response.json()
        assert resource["resourceType"] == "Organization"
        assert resource["name"] == org.name
        assert resource["identifier"] == [{"value": org.identifier}]

    async def test_read_foreign_org_is_forbidden(self, client, clinic_member, make_org):
        _, _, headers = clinic_member
        foreign = await make_org("Foreign")
        response = await client.get(f"/fhir/Organization/{foreign.id}", headers=headers)
        assert response.status_code == 403
        assert response.json()["issue"][0]["code"] == "forbidden"


class TestOrganizationCreate:
    async def test_super_admin_creates_and_joins(self, client, make_org, make_user, grant):
        home = await make_org("Home")
        admin = await make_user(role="super_admin")
        await grant(admin, home, role="admin")

        response = await client.post("/fhir/Organization", headers=auth_headers(admin), json=ORG_BODY)
        assert response.status_code == 201
        resource = response.json()
        assert resource["name"] == "Northside Clinic"
        assert resource["identifier"] == [{"value": "northside-001"}]
        assert resource["type"] == [{"text": "clinic"}]

        async with async_session_factory() as s:
            rows = (
                await s.execute(
                    select(UserOrganizationAccess).where(
                        UserOrganizationAccess.organization_id == uuid.UUID(resource["id"])
                    )
                )
            ).scalars().all()
        assert [(r.user_id, r.role) for r in rows] == [(admin.id, "admin")]

        # The new organization is readable right away.
        read = await client.get(f"/fhir/Organization/{resource['id']}", headers=auth_headers(admin))
        assert read.status_code == 200

    async def test_non_super_admin_forbidden(self, client, make_org, make_user, grant):
        org = await make_org()
        user = await make_user(role="org_admin")
        await grant(user, org, role="admin")
        response = await client.post("/fhir/Organization", headers=auth_headers(user), json=ORG_BODY)
        assert response.status_code == 403
        assert response.json()["issue"][0]["diagnostics"] == "Insufficient permissions"

    async def test_duplicate_identifier(self, client, make_org, make_user, grant):
        await make_org("Existing", identifier="northside-001")
        admin = await make_user(role="super_admin")
        response = await client.post("/fhir/Organization", headers=auth_headers(admin), json=ORG_BODY)
        assert response.status_code == 409

    async def test_name_required(self, client, make_user):
        admin = await make_user(role="super_admin")
        response = await client.post(
            "/fhir/Organization",
            headers=auth_headers(admin),
            json={"resourceType": "Organization", "name": ""},
        )
        assert response.status_code == 400


class TestOrganizationUpdate:
    async def test_admin_member_updates(self, client, make_org, make_user, grant):
        org = await make_org("Old Name", identifier="keep-me")
        user = await make_user(role="org_admin")
        await grant(user, org, role="admin")

        response = await client.put(
            f"/fhir/Organization/{org.id}",
            headers=auth_headers(user),
            json={"resourceType": "Organization", "name": "New Name"},
        )
        assert response.status_code == 200
        resource = response.json()
        assert resource["name"] == "New Name"
        assert resource["identifier"] == [{"value": "keep-me"}]

    async def test_plain_member_forbidden(self, client, clinic_member):
        org, _, headers = clinic_member
        response = await client.put(
            f"/fhir/Organization/{org.id}",
            headers=headers,
            json={"resourceType": "Organization", "name": "Hijacked"},
        )
        assert response.status_code == 403

    async def test_super_admin_user_role_alone_is_not_enough(self, client, make_org, make_user, grant):
        """Updates follow the membership role in that organization, not the user role."""
        org = await make_org()
        other = await make_org("Other")
        admin = await make_user(role="super_admin")
        await grant(admin, other, role="admin")
        await grant(admin, org, role="staff")

        response = await client.put(
            f"/fhir/Organization/{org.id}",
            headers=auth_headers(admin),
            json={"resourceType": "Organization", "name": "Renamed"},
        )
        assert response.status_code == 403

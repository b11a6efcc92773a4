"""
Integration tests for authentication and user-organization endpoints.
"""

from __future__ import annotations

import uuid

import jwt
from sqlmodel import select

from conftest import auth_headers
from records_api.core.database import async_session_factory
from records_api.models.user import User
from records_api.models.user_org import UserOrganizationAccess
from records_api.services import users as user_service


async def _membership_rows(user_email: str):
    async with async_session_factory() as s:
        user = (await s.execute(select(User).where(User.email == user_email))).scalar_one()
        rows = (
            await s.execute(
                select(UserOrganizationAccess).where(UserOrganizationAccess.user_id == user.id)
            )
        ).scalars().all()
        return user, rows


class TestRegister:
    async def test_register_without_organization(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "new@example.com", "password": "Password123!", "role": "staff"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["resourceType"] == "OperationOutcome"
        assert body["issue"][0]["code"] == "informational"

        user, rows = await _membership_rows("new@example.com")
        assert user.role == "staff"
        assert user.password_hash != "Password123!"
        assert rows == []

    async def test_register_with_organization_creates_membership(self, client, make_org):
        org = await make_org()
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "doc@example.com",
                "password": "Password123!",
                "role": "practitioner",
                "organizationId": str(org.id),
            },
        )
        assert response.status_code == 201
        user, rows = await _membership_rows("doc@example.com")
        assert user.primary_organization_id == org.id
        assert [(r.organization_id, r.role, r.status) for r in rows] == [
            (org.id, "practitioner", "active")
        ]

    async def test_super_admin_membership_role_is_admin(self, client, make_org):
        org = await make_org()
        await client.post(
            "/api/auth/register",
            json={
                "email": "root@example.com",
                "password": "Password123!",
                "role": "super_admin",
                "organizationId": str(org.id),
            },
        )
        _, rows = await _membership_rows("root@example.com")
        assert [r.role for r in rows] == ["admin"]

    async def test_unknown_organization_does_not_fail_registration(self, client):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "lost@example.com",
                "password": "Password123!",
                "role": "staff",
                "organizationId": str(uuid.uuid4()),
            },
        )
        assert response.status_code == 201
        user, rows = await _membership_rows("lost@example.com")
        assert rows == []
        assert user.primary_organization_id is None

    async def test_duplicate_email(self, client, make_user):
        await make_user(email="taken@example.com")
        response = await client.post(
            "/api/auth/register",
            json={"email": "taken@example.com", "password": "Password123!", "role": "staff"},
        )
        assert response.status_code == 409
        assert response.json()["issue"][0]["code"] == "conflict"

    async def test_duplicate_email_inserted_after_check(self, client, make_user, monkeypatch):
        """A concurrent registration that wins between the lookup and the insert is a 409."""
        await make_user(email="raced@example.com")

        async def not_found_yet(email, session):
            return None

        monkeypatch.setattr(user_service, "get_user_by_email", not_found_yet)
        response = await client.post(
            "/api/auth/register",
            json={"email": "raced@example.com", "password": "Password123!", "role": "staff"},
        )
        assert response.status_code == 409
        assert response.json()["issue"][0]["code"] == "conflict"
        assert response.json()["issue"][0]["diagnostics"] == "User already exists"

    async def test_short_password(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "short@example.com", "password": "short", "role": "staff"},
        )
        assert response.status_code == 400

    async def test_unknown_role(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "r@example.com", "password": "Password123!", "role": "janitor"},
        )
        assert response.status_code == 400


class TestLogin:
    async def test_login_returns_token_and_organizations(self, client, make_org, make_user, grant):
        org = await make_org("General Hospital")
        user = await make_user(email="doc@example.com", primary_organization_id=org.id)
        await grant(user, org, role="practitioner")

        response = await client.post(
            "/api/auth/login", json={"email": "doc@example.com", "password": "Password123!"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == str(user.id)
        assert body["user"]["primaryOrganizationId"] == str(org.id)
        assert body["user"]["organizations"] == [
            {"id": str(org.id), "name": "General Hospital", "role": "practitioner", "permissions": None}
        ]

        claims = jwt.decode(body["token"], options={"verify_signature": False})
        assert claims["userId"] == str(user.id)
        assert "organizationIds" not in claims

        async with async_session_factory() as s:
            stored = await s.get(User, user.id)
        assert stored.last_login is not None

    async def test_wrong_password(self, client, make_user):
        await make_user(email="doc@example.com")
        response = await client.post(
            "/api/auth/login", json={"email": "doc@example.com", "password": "nope-nope"}
        )
        assert response.status_code == 401
        assert response.json()["issue"][0]["diagnostics"] == "Invalid credentials"

    async def test_inactive_user(self, client, make_user):
        await make_user(email="gone@example.com", active=False)
        response = await client.post(
            "/api/auth/login", json={"email": "gone@example.com", "password": "Password123!"}
        )
        assert response.status_code == 401
        assert response.json()["issue"][0]["diagnostics"] == "Invalid credentials"

    async def test_token_works_for_me(self, client, clinic_member):
        org, user, _ = clinic_member
        login = await client.post(
            "/api/auth/login", json={"email": user.email, "password": "Password123!"}
        )
        token = login.json()["token"]
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["currentOrganizationId"] == str(org.id)


class TestSessionEndpoints:
    async def test_me(self, client, clinic_member):
        org, user, headers = clinic_member
        response = await client.get("/api/auth/me", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["email"] == user.email
        assert body["primaryOrganizationId"] == str(org.id)
        assert body["currentOrganizationId"] == str(org.id)
        assert [o["id"] for o in body["organizations"]] == [str(org.id)]

    async def test_refresh_issues_new_token(self, client, clinic_member):
        _, user, headers = clinic_member
        response = await client.post("/api/auth/refresh", headers=headers)
        assert response.status_code == 200
        claims = jwt.decode(response.json()["token"], options={"verify_signature": False})
        assert claims["userId"] == str(user.id)
        assert claims["role"] == user.role

    async def test_logout(self, client, clinic_member):
        _, _, headers = clinic_member
        response = await client.post("/api/auth/logout", headers=headers)
        assert response.status_code == 200
        assert response.json()["issue"][0]["severity"] == "information"

    async def test_me_requires_token(self, client):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401


class TestUserOrganizations:
    async def test_list_marks_primary(self, client, make_org, make_user, grant):
        org_a = await make_org("A", type="hospital")
        org_b = await make_org("B")
        user = await make_user(primary_organization_id=org_b.id)
        await grant(user, org_a, role="staff")
        await grant(user, org_b, role="admin", permissions={"billing": True})

        response = await client.get("/api/user/organizations", headers=auth_headers(user))
        assert response.status_code == 200
        organizations = {o["id"]: o for o in response.json()["organizations"]}
        assert organizations[str(org_a.id)]["isPrimary"] is False
        assert organizations[str(org_a.id)]["type"] == "hospital"
        assert organizations[str(org_b.id)]["isPrimary"] is True
        assert organizations[str(org_b.id)]["permissions"] == {"billing": True}

    async def test_switch_to_member_org(self, client, make_org, make_user, grant):
        org_a = await make_org("A")
        org_b = await make_org("B")
        user = await make_user(primary_organization_id=org_a.id)
        await grant(user, org_a)
        await grant(user, org_b)

        response = await client.post(
            "/api/user/switch-organization",
            headers=auth_headers(user),
            json={"organizationId": str(org_b.id)},
        )
        assert response.status_code == 200
        assert response.json() == {
            "message": "Organization context switched successfully",
            "currentOrganization": str(org_b.id),
        }

    async def test_switch_to_foreign_org(self, client, clinic_member, make_org):
        _, _, headers = clinic_member
        foreign = await make_org("Foreign")
        response = await client.post(
            "/api/user/switch-organization",
            headers=headers,
            json={"organizationId": str(foreign.id)},
        )
        assert response.status_code == 403

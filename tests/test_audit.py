"""
Tests for the request audit trail.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from records_api.core.database import async_session_factory
from records_api.models.audit_log import AuditLog
from records_api.services import audit
from records_api.services.audit import AuditEntry, action_for_method, resource_from_path


async def _audit_rows():
    async with async_session_factory() as s:
        result = await s.execute(select(AuditLog).order_by(AuditLog.created_at))
        return result.scalars().all()


class TestPathParsing:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/fhir/Patient", ("Patient", "bulk")),
            ("/fhir/Patient/123", ("Patient", "123")),
            ("/fhir/Patient/123/assign-organization", ("Patient", "123")),
            ("/api/user/organizations", ("user", "organizations")),
            ("/fhir", ("Unknown", "bulk")),
            ("/elsewhere", ("Unknown", "bulk")),
        ],
    )
    def test_resource_from_path(self, path, expected):
        assert resource_from_path(path) == expected

    @pytest.mark.parametrize(
        "method, action",
        [("GET", "READ"), ("post", "CREATE"), ("PUT", "UPDATE"), ("PATCH", "UPDATE"),
         ("DELETE", "DELETE"), ("HEAD", "UNKNOWN")],
    )
    def test_action_for_method(self, method, action):
        assert action_for_method(method) == action


class TestAuditTrail:
    async def test_search_is_audited(self, client, clinic_member):
        org, user, headers = clinic_member
        response = await client.get("/fhir/Patient", headers={**headers, "User-Agent": "pytest"})
        assert response.status_code == 200

        rows = await _audit_rows()
        assert len(rows) == 1
        row = rows[0]
        assert row.user_id == user.id
        assert row.organization_id == org.id
        assert (row.resource_type, row.resource_id, row.action) == ("Patient", "bulk", "READ")
        assert row.changes is None
        assert row.user_agent == "pytest"

    async def test_create_records_body(self, client, clinic_member):
        _, _, headers = clinic_member
        body = {"resourceType": "Patient", "name": [{"family": "Smith"}]}
        response = await client.post("/fhir/Patient", headers=headers, json=body)
        assert response.status_code == 201

        row = (await _audit_rows())[0]
        assert row.action == "CREATE"
        assert row.changes == body

    async def test_read_by_id(self, client, clinic_member):
        org, _, headers = clinic_member
        await client.get(f"/fhir/Organization/{org.id}", headers=headers)
        row = (await _audit_rows())[0]
        assert (row.resource_type, row.resource_id) == ("Organization", str(org.id))

    async def test_rejected_requests_are_not_audited(self, client, clinic_member):
        _, _, headers = clinic_member
        await client.get("/fhir/Patient")
        await client.get(f"/fhir/Patient/{uuid.uuid4()}", headers=headers)
        assert await _audit_rows() == []

    async def test_auth_routes_are_not_audited(self, client, clinic_member):
        _, _, headers = clinic_member
        await client.get("/api/auth/me", headers=headers)
        assert await _audit_rows() == []

    async def test_disabled(self, client, clinic_member, monkeypatch):
        _, _, headers = clinic_member
        monkeypatch.setattr(audit.settings, "enable_audit_logging", False)
        await client.get("/fhir/Patient", headers=headers)
        assert await _audit_rows() == []

    async def test_write_failure_is_swallowed(self, monkeypatch):
        def unavailable():
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(audit, "get_session_context", unavailable)
        entry = AuditEntry(
            user_id=uuid.uuid4(),
            organization_id=None,
            resource_type="Patient",
            resource_id="bulk",
            action="READ",
        )
        await audit.write_audit_entry(entry)
        assert await _audit_rows() == []

"""
Shared fixtures: a throwaway SQLite database per test, an HTTP client over
the ASGI app, and factories for organizations, users and memberships.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from datetime import timedelta
from typing import Optional

# Settings are read at import time; configure before importing the app.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="records-api-tests-")
os.environ["HC_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["HC_ENVIRONMENT"] = "test"
os.environ["HC_SECRET_KEY"] = "test-secret-key-" + "x" * 48
os.environ["HC_BCRYPT_ROUNDS"] = "4"
os.environ["HC_LOG_LEVEL"] = "warning"

import pytest
from httpx import ASGITransport, AsyncClient

from records_api.core.access import IdentityContext, OrganizationAccess
from records_api.core.auth import hash_password
from records_api.core.database import async_session_factory, drop_db, engine, init_db
from records_api.core.metrics import metrics
from records_api.core.tokens import create_access_token
from records_api.main import app
from records_api.models.organization import Organization
from records_api.models.user import User
from records_api.models.user_org import UserOrganizationAccess


@pytest.fixture(autouse=True)
async def database():
    await drop_db()
    await init_db()
    metrics.reset()
    yield
    await engine.dispose()


@pytest.fixture
async def session():
    async with async_session_factory() as s:
        yield s


@pytest.fixture
async def client():
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_org():
    async def _make(name: str = "General Hospital", active: bool = True, **kwargs) -> Organization:
        async with async_session_factory() as s:
            org = Organization(
                identifier=kwargs.pop("identifier", f"org-{uuid.uuid4().hex[:8]}"),
                name=name,
                active=active,
                **kwargs,
            )
            s.add(org)
            await s.commit()
            return org

    return _make


@pytest.fixture
def make_user():
    async def _make(
        email: Optional[str] = None,
        role: str = "practitioner",
        password: str = "Password123!",
        active: bool = True,
        primary_organization_id: Optional[uuid.UUID] = None,
    ) -> User:
        async with async_session_factory() as s:
            user = User(
                email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
                password_hash=hash_password(password),
                role=role,
                active=active,
                primary_organization_id=primary_organization_id,
            )
            s.add(user)
            await s.commit()
            return user

    return _make


@pytest.fixture
def grant():
    async def _grant(
        user: User,
        org: Organization,
        role: str = "practitioner",
        status: str = "active",
        permissions: Optional[dict] = None,
    ) -> UserOrganizationAccess:
        async with async_session_factory() as s:
            membership = UserOrganizationAccess(
                user_id=user.id,
                organization_id=org.id,
                role=role,
                status=status,
                permissions=permissions,
            )
            s.add(membership)
            await s.commit()
            return membership

    return _grant


def token_for(user: User, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(user.id, user.email, user.role, expires_delta=expires_delta)


def auth_headers(user: User, organization_id=None) -> dict:
    headers = {"Authorization": f"Bearer {token_for(user)}"}
    if organization_id is not None:
        headers["x-organization-id"] = str(organization_id)
    return headers


def identity_for(
    user_id: Optional[uuid.UUID] = None,
    role: str = "practitioner",
    memberships: Optional[list[tuple[uuid.UUID, str]]] = None,
    current: Optional[uuid.UUID] = None,
) -> IdentityContext:
    """Build an IdentityContext directly, for unit tests."""
    memberships = memberships or []
    access = tuple(
        OrganizationAccess(organization_id=org_id, organization_name="Org", role=r)
        for org_id, r in memberships
    )
    return IdentityContext(
        id=user_id or uuid.uuid4(),
        email="unit@example.com",
        role=role,
        organization_ids=tuple(org_id for org_id, _ in memberships),
        primary_organization_id=None,
        current_organization_id=current,
        organization_access=access,
    )


@pytest.fixture
async def clinic_member(make_org, make_user, grant):
    """An org with one practitioner member; returns (org, user, headers)."""
    org = await make_org("Family Health Clinic")
    user = await make_user(role="practitioner", primary_organization_id=org.id)
    await grant(user, org, role="practitioner")
    return org, user, auth_headers(user)

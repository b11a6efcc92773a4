"""
Audit trail: one AuditLog row per authenticated FHIR / user API request.

Writes happen in a background task with their own session, after the
response is sent. A failed write is logged and never reaches the client.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import BackgroundTasks, Depends, Request

from records_api.core.access import IdentityContext
from records_api.core.auth import get_identity_context
from records_api.core.config import get_settings
from records_api.core.database import get_session_context
from records_api.models.audit_log import AuditLog

log = structlog.get_logger()
settings = get_settings()

METHOD_ACTIONS = {
    "GET": "READ",
    "POST": "CREATE",
    "PUT": "UPDATE",
    "PATCH": "UPDATE",
    "DELETE": "DELETE",
}


@dataclass(frozen=True)
class AuditEntry:
    user_id: uuid.UUID
    organization_id: Optional[uuid.UUID]
    resource_type: str
    resource_id: str
    action: str
    changes: Optional[dict] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def action_for_method(method: str) -> str:
    return METHOD_ACTIONS.get(method.upper(), "UNKNOWN")


def resource_from_path(path: str) -> tuple[str, str]:
    """(resource type, resource id) from a FHIR or API path.

    /fhir/Patient/123 -> ("Patient", "123"); /fhir/Patient -> ("Patient", "bulk").
    """
    parts = [part for part in path.split("/") if part]
    for base in (settings.fhir_base_path.strip("/"), settings.api_base_path.strip("/")):
        if base in parts:
            index = parts.index(base)
            resource_type = parts[index + 1] if index + 1 < len(parts) else "Unknown"
            resource_id = parts[index + 2] if index + 2 < len(parts) else "bulk"
            return resource_type, resource_id
    return "Unknown", "bulk"


async def write_audit_entry(entry: AuditEntry) -> None:
    try:
        async with get_session_context() as session:
            session.add(
                AuditLog(
                    user_id=entry.user_id,
                    organization_id=entry.organization_id,
                    resource_type=entry.resource_type,
                    resource_id=entry.resource_id,
                    action=entry.action,
                    changes=entry.changes,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                )
            )
    except Exception as exc:
        log.error(
            "audit.write_failed",
            user_id=str(entry.user_id),
            resource_type=entry.resource_type,
            error=str(exc),
        )


async def _request_changes(request: Request) -> Optional[dict]:
    if request.method == "GET":
        return None
    body = await request.body()
    if not body:
        return None
    try:
        changes = json.loads(body)
    except ValueError:
        return None
    return changes if isinstance(changes, dict) else {"body": changes}


async def audit_request(
    request: Request,
    background_tasks: BackgroundTasks,
    identity: IdentityContext = Depends(get_identity_context),
) -> None:
    """Router-level dependency that schedules the audit write for this request."""
    if not settings.enable_audit_logging:
        return
    resource_type, resource_id = resource_from_path(request.url.path)
    entry = AuditEntry(
        user_id=identity.id,
        organization_id=identity.current_organization_id,
        resource_type=resource_type,
        resource_id=resource_id,
        action=action_for_method(request.method),
        changes=await _request_changes(request),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    background_tasks.add_task(write_audit_entry, entry)

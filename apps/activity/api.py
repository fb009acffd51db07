from typing import Any, List, Optional
from uuid import UUID
from datetime import datetime
from ninja import Router, Schema
from django.http import HttpRequest

from apps.core.pagination import PageMeta, page_request, page_meta, DEFAULT_PAGE_SIZE
from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from apps.identity.security import require_auth
from .models import AuditLog
from . import services

router = Router(tags=["Activity"])


class AuditLogOut(Schema):
    id: UUID
    action: str
    target_type: str
    target_id: UUID
    target_label: str
    performed_by_id: Optional[UUID] = None
    performed_by_name: Optional[str] = None
    performed_at: datetime
    context: Any


class AuditLogPageOut(PageMeta):
    items: List[AuditLogOut]


class EventOut(Schema):
    id: UUID
    type: str
    entity: str
    entity_id: UUID
    actor_id: Optional[UUID] = None
    payload: Any
    timestamp: datetime


def _serialize_log(log: AuditLog) -> AuditLogOut:
    """Convert an AuditLog model instance to its output schema."""
    performed_by_name = None
    if log.performed_by_id and log.performed_by:
        performed_by_name = log.performed_by.name or log.performed_by.email

    return AuditLogOut(
        id=log.id,
        action=log.action,
        target_type=log.target_type,
        target_id=log.target_id,
        target_label=log.target_label,
        performed_by_id=log.performed_by_id,
        performed_by_name=performed_by_name,
        performed_at=log.performed_at,
        context=log.context,
    )


def _serialize_event(log: AuditLog) -> EventOut:
    return EventOut(
        id=log.id,
        type=log.action,
        entity=log.target_type,
        entity_id=log.target_id,
        actor_id=log.performed_by_id,
        payload=log.context,
        timestamp=log.performed_at,
    )


# =============================================================================
# Audit Log Endpoints
# =============================================================================

@router.get("/", response=AuditLogPageOut, auth=None)
@has_permission(Permissions.ACTIVITY_VIEW)
def list_audit_logs(
    request: HttpRequest,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[UUID] = None,
    performed_by: Optional[UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """
    List audit log entries, newest first.
    Supports filtering by action, target, actor and date range.
    """
    page_req = page_request(page, limit)
    logs, total = services.list_audit_logs(
        page_req,
        action=action,
        target_type=target_type,
        target_id=target_id,
        performed_by=performed_by,
        start=start,
        end=end,
    )
    return {"items": [_serialize_log(log) for log in logs], **page_meta(total, page_req)}


# =============================================================================
# Live Update Feed
# =============================================================================

@router.get("/events", response=List[EventOut], auth=None)
def list_events(
    request: HttpRequest,
    since: Optional[datetime] = None,
    after: Optional[UUID] = None,
    limit: int = 50,
    entity: Optional[str] = None,
    entity_id: Optional[UUID] = None,
):
    """
    Project, task and comment events after the `since`/`after` cursor, oldest first.

    Clients poll with the timestamp and id of the last event they received.
    Only events of projects the caller can open are returned.
    """
    user = require_auth(request)
    events = services.list_events(user, since=since, after=after, limit=limit, entity=entity, entity_id=entity_id)
    return [_serialize_event(log) for log in events]

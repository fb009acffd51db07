from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ninja import Router, Schema
from django.http import HttpRequest

from apps.core.pagination import PageMeta, page_request, page_meta, DEFAULT_PAGE_SIZE
from apps.identity.security import require_auth
from . import services

router = Router(tags=["Notifications"])


class NotificationOut(Schema):
    id: UUID
    type: str
    title: str
    message: str
    target_type: str
    target_id: UUID
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationPageOut(PageMeta):
    items: List[NotificationOut]
    unread: int


class ReadAllOut(Schema):
    updated: int


@router.get("/", response=NotificationPageOut, auth=None)
def list_notifications(
    request: HttpRequest,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    unread: Optional[bool] = None,
):
    """The current user's notifications, newest first."""
    user = require_auth(request)
    page_req = page_request(page, limit)
    items, total = services.list_notifications(user, page_req, unread=unread)
    return {"items": items, "unread": services.unread_count(user), **page_meta(total, page_req)}


@router.post("/read-all", response=ReadAllOut, auth=None)
def mark_all_read(request: HttpRequest):
    user = require_auth(request)
    return {"updated": services.mark_all_read(user)}


@router.post("/{uuid:notification_id}/read", response=NotificationOut, auth=None)
def mark_read(request: HttpRequest, notification_id: UUID):
    user = require_auth(request)
    return services.mark_read(user, notification_id)

"""
Task endpoints: CRUD, statistics, comments and attachments.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ninja import Router, File, Query
from ninja.files import UploadedFile
from django.http import HttpRequest, FileResponse

from apps.core.pagination import page_request, page_meta, DEFAULT_PAGE_SIZE
from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from apps.identity.security import require_auth
from .schemas import (
    TaskCreateIn,
    TaskUpdateIn,
    TaskOut,
    TaskPageOut,
    TaskStatsOut,
    CommentIn,
    CommentUpdateIn,
    CommentOut,
    AttachmentOut,
)
from . import services, attachment_service, analytics_service

router = Router(tags=["Tasks"])


# =============================================================================
# Task Endpoints
# =============================================================================

@router.get("/", response=TaskPageOut, auth=None)
@has_permission(Permissions.TASK_VIEW)
def list_tasks(
    request: HttpRequest,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    project_id: Optional[UUID] = None,
    assignee_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, max_length=100),
    due_after: Optional[datetime] = None,
    due_before: Optional[datetime] = None,
    overdue: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    """List tasks in projects the user can see."""
    page_req = page_request(page, limit)
    items, total = services.list_tasks(
        request.user,
        page_req,
        status=status,
        priority=priority,
        project_id=project_id,
        assignee_id=assignee_id,
        search=search,
        due_after=due_after,
        due_before=due_before,
        overdue=overdue,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, **page_meta(total, page_req)}


@router.post("/", response={201: TaskOut}, auth=None)
@has_permission(Permissions.TASK_CREATE)
def create_task(request: HttpRequest, payload: TaskCreateIn):
    """Create a task in an open project. The assignee is notified."""
    return 201, services.create_task(request.user, payload)


@router.get("/stats", response=TaskStatsOut, auth=None)
@has_permission(Permissions.TASK_VIEW)
def task_stats(request: HttpRequest, project_id: Optional[UUID] = None):
    """Counts by status and priority, plus overdue and due-soon totals."""
    return analytics_service.get_task_stats(request.user, project_id=project_id)


@router.get("/{uuid:task_id}", response=TaskOut, auth=None)
@has_permission(Permissions.TASK_VIEW)
def get_task(request: HttpRequest, task_id: UUID):
    return services.get_task(request.user, task_id)


@router.put("/{uuid:task_id}", response=TaskOut, auth=None)
def update_task(request: HttpRequest, task_id: UUID, payload: TaskUpdateIn):
    """
    Update a task. Needs task.update, or task.update_own for the assignee.
    `version` must match the stored version.
    """
    user = require_auth(request)
    return services.update_task(user, task_id, payload)


@router.delete("/{uuid:task_id}", response={204: None}, auth=None)
@has_permission(Permissions.TASK_DELETE)
def delete_task(request: HttpRequest, task_id: UUID):
    services.delete_task(request.user, task_id)
    return 204, None


# =============================================================================
# Comment Endpoints
# =============================================================================

@router.get("/{uuid:task_id}/comments", response=List[CommentOut], auth=None)
@has_permission(Permissions.TASK_VIEW)
def list_comments(request: HttpRequest, task_id: UUID):
    return services.list_comments(request.user, task_id)


@router.post("/{uuid:task_id}/comments", response={201: CommentOut}, auth=None)
@has_permission(Permissions.TASK_COMMENT)
def add_comment(request: HttpRequest, task_id: UUID, payload: CommentIn):
    """Comment on a task, optionally replying to another comment on it."""
    return 201, services.add_comment(request.user, task_id, payload)


@router.put("/{uuid:task_id}/comments/{uuid:comment_id}", response=CommentOut, auth=None)
@has_permission(Permissions.TASK_COMMENT)
def update_comment(request: HttpRequest, task_id: UUID, comment_id: UUID, payload: CommentUpdateIn):
    return services.update_comment(request.user, task_id, comment_id, payload)


@router.delete("/{uuid:task_id}/comments/{uuid:comment_id}", response={204: None}, auth=None)
@has_permission(Permissions.TASK_COMMENT)
def delete_comment(request: HttpRequest, task_id: UUID, comment_id: UUID):
    services.delete_comment(request.user, task_id, comment_id)
    return 204, None


# =============================================================================
# Attachment Endpoints
# =============================================================================

@router.get("/{uuid:task_id}/attachments", response=List[AttachmentOut], auth=None)
@has_permission(Permissions.TASK_VIEW)
def list_attachments(request: HttpRequest, task_id: UUID):
    return attachment_service.list_attachments(request.user, task_id)


@router.post("/{uuid:task_id}/attachments", response={201: AttachmentOut}, auth=None)
def upload_attachment(
    request: HttpRequest,
    task_id: UUID,
    file: UploadedFile = File(...),
):
    """Upload a file (images, PDF, text, CSV, DOCX, XLSX; up to 10 MB)."""
    user = require_auth(request)
    return 201, attachment_service.upload_attachment(user, task_id, file)


@router.get("/{uuid:task_id}/attachments/{uuid:attachment_id}/download", auth=None)
@has_permission(Permissions.TASK_VIEW)
def download_attachment(request: HttpRequest, task_id: UUID, attachment_id: UUID):
    attachment = attachment_service.get_attachment(request.user, task_id, attachment_id)
    return FileResponse(
        attachment.file.open('rb'),
        as_attachment=True,
        filename=attachment.file_name,
        content_type=attachment.file_type,
    )


@router.delete("/{uuid:task_id}/attachments/{uuid:attachment_id}", response={204: None}, auth=None)
def delete_attachment(request: HttpRequest, task_id: UUID, attachment_id: UUID):
    """Only the uploader or a user with task.delete may remove an attachment."""
    user = require_auth(request)
    attachment_service.delete_attachment(user, task_id, attachment_id)
    return 204, None

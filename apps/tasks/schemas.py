"""
API Schemas for Tasks app.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional
from uuid import UUID

from ninja import Schema
from pydantic import AfterValidator, Field

from apps.core.pagination import PageMeta
from apps.core.validation import sanitize_input, is_valid_title
from .models import TaskStatus, TaskPriority


def _clean_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Title is required")
    if not is_valid_title(value):
        raise ValueError("Title may only contain letters, numbers, spaces, hyphens and underscores")
    return value


def _clean_text(value: str) -> str:
    return sanitize_input(value, max_length=1000)


def _clean_comment(value: str) -> str:
    value = sanitize_input(value, max_length=5000)
    if not value:
        raise ValueError("Comment cannot be empty")
    return value


TaskTitle = Annotated[str, Field(max_length=100), AfterValidator(_clean_title)]
TaskDescription = Annotated[str, Field(max_length=1000), AfterValidator(_clean_text)]
Hours = Annotated[Decimal, Field(ge=0, max_digits=7, decimal_places=2)]
CommentContent = Annotated[str, Field(max_length=5000), AfterValidator(_clean_comment)]


# =============================================================================
# Request Schemas
# =============================================================================

class TaskCreateIn(Schema):
    title: TaskTitle
    description: TaskDescription = ""
    project_id: UUID
    assignee_id: Optional[UUID] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    estimated_hours: Optional[Hours] = None
    metadata: dict = {}


class TaskUpdateIn(Schema):
    """
    Partial update; `version` must equal the stored version.
    Send `assignee_id: null` together with `unassign: true` to clear the assignee.
    """
    version: int
    title: Optional[TaskTitle] = None
    description: Optional[TaskDescription] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[UUID] = None
    unassign: bool = False
    due_date: Optional[datetime] = None
    estimated_hours: Optional[Hours] = None
    actual_hours: Optional[Hours] = None
    metadata: Optional[dict] = None


class CommentIn(Schema):
    content: CommentContent
    parent_id: Optional[UUID] = None


class CommentUpdateIn(Schema):
    content: CommentContent


# =============================================================================
# Response Schemas
# =============================================================================

class TaskOut(Schema):
    id: UUID
    title: str
    description: str
    project_id: UUID
    assignee_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    updated_by_id: Optional[UUID] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_hours: Optional[Decimal] = None
    actual_hours: Optional[Decimal] = None
    metadata: dict
    version: int
    days_remaining: Optional[int] = None
    is_overdue: bool
    created_at: datetime
    updated_at: datetime


class TaskPageOut(PageMeta):
    items: List[TaskOut]


class CommentOut(Schema):
    id: UUID
    task_id: UUID
    author_id: Optional[UUID] = None
    author_name: Optional[str] = None
    parent_id: Optional[UUID] = None
    content: str
    edited: bool
    created_at: datetime
    updated_at: datetime


class AttachmentOut(Schema):
    id: UUID
    task_id: UUID
    uploaded_by_id: Optional[UUID] = None
    file_name: str
    file_type: str
    file_size: int
    content_hash: str
    created_at: datetime


class TaskStatsOut(Schema):
    total: int
    by_status: dict
    by_priority: dict
    overdue: int
    due_soon: int
    completed_on_time: int
    average_completion_days: Optional[float] = None

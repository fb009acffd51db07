"""DTOs for Tasks app - Data Transfer Objects for cross-app communication."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from apps.core import dates


@dataclass(frozen=True)
class TaskDTO:
    id: UUID
    title: str
    description: str
    project_id: UUID
    assignee_id: Optional[UUID]
    created_by_id: Optional[UUID]
    updated_by_id: Optional[UUID]
    status: str
    priority: str
    due_date: Optional[datetime]
    completed_at: Optional[datetime]
    estimated_hours: Optional[Decimal]
    actual_hours: Optional[Decimal]
    metadata: dict
    version: int
    created_at: datetime
    updated_at: datetime

    @property
    def days_remaining(self) -> Optional[int]:
        return dates.days_remaining(self.due_date)

    @property
    def is_overdue(self) -> bool:
        return dates.is_overdue(self.due_date, self.status)


@dataclass(frozen=True)
class CommentDTO:
    id: UUID
    task_id: UUID
    author_id: Optional[UUID]
    author_name: Optional[str]
    parent_id: Optional[UUID]
    content: str
    edited: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class AttachmentDTO:
    id: UUID
    task_id: UUID
    uploaded_by_id: Optional[UUID]
    file_name: str
    file_type: str
    file_size: int
    content_hash: str
    created_at: datetime


@dataclass(frozen=True)
class TaskStatsDTO:
    total: int
    by_status: dict
    by_priority: dict
    overdue: int
    due_soon: int
    completed_on_time: int
    average_completion_days: Optional[float] = None

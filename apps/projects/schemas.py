"""
API Schemas for Projects app.
"""
from datetime import date, datetime
from typing import Annotated, List, Optional
from uuid import UUID

from ninja import Schema
from pydantic import AfterValidator, Field, model_validator

from apps.core.pagination import PageMeta
from apps.core.validation import sanitize_input
from .models import ProjectStatus, ProjectPriority


def _clean_name(value: str) -> str:
    value = sanitize_input(value, max_length=100)
    if len(value) < 3:
        raise ValueError("Project name must be between 3 and 100 characters")
    return value


def _clean_description(value: str) -> str:
    value = sanitize_input(value, max_length=2000)
    if len(value) < 10:
        raise ValueError("Project description must be between 10 and 2000 characters")
    return value


ProjectName = Annotated[str, Field(max_length=100), AfterValidator(_clean_name)]
ProjectDescription = Annotated[str, Field(max_length=2000), AfterValidator(_clean_description)]


# =============================================================================
# Request Schemas
# =============================================================================

class ProjectCreateIn(Schema):
    name: ProjectName
    description: ProjectDescription
    priority: ProjectPriority = ProjectPriority.MEDIUM
    start_date: date
    end_date: date
    member_ids: List[UUID] = Field(min_length=1)
    settings: dict = {}

    @model_validator(mode='after')
    def end_after_start(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self


class ProjectUpdateIn(Schema):
    """Partial update; `version` must equal the stored version."""
    version: int
    name: Optional[ProjectName] = None
    description: Optional[ProjectDescription] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[ProjectPriority] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    member_ids: Optional[List[UUID]] = Field(default=None, min_length=1)
    settings: Optional[dict] = None


# =============================================================================
# Response Schemas
# =============================================================================

class ProjectOut(Schema):
    id: UUID
    name: str
    description: str
    owner_id: UUID
    member_ids: List[UUID]
    status: str
    priority: str
    start_date: date
    end_date: date
    settings: dict
    version: int
    task_count: int
    completed_task_count: int
    progress: float
    created_at: datetime
    updated_at: datetime


class ProjectPageOut(PageMeta):
    items: List[ProjectOut]

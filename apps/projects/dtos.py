"""DTOs for Projects app - Data Transfer Objects for cross-app communication."""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple
from uuid import UUID


@dataclass(frozen=True)
class ProjectDTO:
    id: UUID
    name: str
    description: str
    owner_id: UUID
    member_ids: Tuple[UUID, ...]
    status: str
    priority: str
    start_date: date
    end_date: date
    settings: dict
    version: int
    created_at: datetime
    updated_at: datetime
    task_count: int = 0
    completed_task_count: int = 0

    @property
    def progress(self) -> float:
        """Percent of the project's tasks that are completed."""
        if not self.task_count:
            return 0.0
        return round(self.completed_task_count * 100 / self.task_count, 1)

    def is_member(self, user_id: Optional[UUID]) -> bool:
        return user_id == self.owner_id or user_id in self.member_ids

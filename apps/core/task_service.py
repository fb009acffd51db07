"""
TaskService - Abstraction layer for async task execution.

The backend is chosen by the TASK_BACKEND setting (environment variable).

Usage:
    from apps.core.task_service import TaskService

    TaskService.notify_task_assigned(task_id=task.id, actor_id=user.id)

Environment Configuration:
    TASK_BACKEND=local   # Sync execution (development, tests)
    TASK_BACKEND=celery  # Celery + Redis
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from uuid import UUID

from django.conf import settings

logger = logging.getLogger(__name__)


class TaskServiceInterface(ABC):
    """
    Abstract interface for async task execution.

    Implementations:
    - LocalTaskService: Sync execution for development/testing
    - CeleryTaskService: Celery + Redis
    """

    @abstractmethod
    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """
        Queue a task for async execution.

        Args:
            task_name: Identifier for the task handler
            payload: Data to pass to the task
            delay_seconds: Delay before execution (0 = immediate)

        Returns:
            Task ID for tracking
        """


def _get_backend() -> TaskServiceInterface:
    """Get the configured task backend."""
    backend = getattr(settings, 'TASK_BACKEND', 'local')

    if backend == 'local':
        from apps.core.backends.local_backend import LocalTaskService
        return LocalTaskService()
    elif backend == 'celery':
        from apps.core.backends.celery_backend import CeleryTaskService
        return CeleryTaskService()
    else:
        raise ValueError(f"Unknown TASK_BACKEND: {backend}")


class TaskService:
    """
    Facade for sending async tasks.

    One static method per job, each delegating to the configured backend.
    """

    @staticmethod
    def notify_task_assigned(task_id: UUID, actor_id: Optional[UUID] = None) -> str:
        """
        Queue the assignment notification for a task's current assignee.

        Used by: tasks app after create/update changes the assignee.
        """
        logger.info(f"Queueing notify_task_assigned for task {task_id}")
        return _get_backend().send_task(
            task_name="notify_task_assigned",
            payload={
                "task_id": str(task_id),
                "actor_id": str(actor_id) if actor_id else None,
            },
        )

    @staticmethod
    def send_due_date_reminders() -> str:
        """
        Queue the due-date reminder sweep.

        Used by: Celery beat (daily) and the `send_reminders` management command.
        """
        logger.info("Queueing send_due_date_reminders task")
        return _get_backend().send_task(
            task_name="send_due_date_reminders",
            payload={},
        )

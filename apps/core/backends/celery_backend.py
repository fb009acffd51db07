"""
Celery Task Backend - Async execution via Celery + Redis.

Usage:
    Set TASK_BACKEND=celery in your environment.
    Requires Redis and a Celery worker running.
"""
import uuid
import logging
from typing import Any, Dict
from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)


# Task name -> (registered Celery task, payload keys passed as positional args)
CELERY_TASKS = {
    "notify_task_assigned": (
        "apps.notifications.tasks.notify_task_assigned_task",
        ["task_id", "actor_id"],
    ),
    "send_due_date_reminders": (
        "apps.notifications.tasks.send_due_date_reminders_task",
        [],
    ),
}


def _get_celery_task(task_name: str):
    """Get the Celery task object and argument names for a task name."""
    entry = CELERY_TASKS.get(task_name)
    if not entry:
        raise ValueError(f"No Celery task mapped for: {task_name}")

    task_path, arg_names = entry
    from celery import current_app
    return current_app.tasks.get(task_path), arg_names


class CeleryTaskService(TaskServiceInterface):
    """Execute tasks via Celery + Redis."""

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Queue task via Celery."""
        task_id = str(uuid.uuid4())

        logger.info(f"[CELERY] Queueing task {task_name} (id={task_id})")

        task, arg_names = _get_celery_task(task_name)

        if task is None:
            logger.error(f"[CELERY] Task not found: {task_name}")
            raise ValueError(f"Celery task not found: {task_name}")

        args = [payload.get(name) for name in arg_names]

        if delay_seconds > 0:
            task.apply_async(args=args, countdown=delay_seconds, task_id=task_id)
        else:
            task.apply_async(args=args, task_id=task_id)

        return task_id

"""
Local Task Backend - Synchronous execution for development.

This backend executes tasks immediately in the same process.
No Redis or worker required.

Usage:
    Set TASK_BACKEND=local in your environment.
"""
import uuid
import logging
from typing import Any, Dict
from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)


# Task handler registry - maps task names to handler functions
TASK_HANDLERS = {}


def register_handler(task_name: str):
    """Decorator to register a task handler."""
    def decorator(func):
        TASK_HANDLERS[task_name] = func
        return func
    return decorator


class LocalTaskService(TaskServiceInterface):
    """
    Execute tasks synchronously in the same process.

    Tasks run in the request cycle, so they block the response.
    Only use for development and tests.
    """

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Execute task synchronously."""
        task_id = str(uuid.uuid4())

        logger.info(f"[LOCAL] Executing task {task_name} (id={task_id})")

        if delay_seconds > 0:
            logger.warning(
                f"[LOCAL] delay_seconds={delay_seconds} ignored in local backend"
            )

        handler = TASK_HANDLERS.get(task_name)
        if handler:
            try:
                result = handler(**payload)
                logger.info(f"[LOCAL] Task {task_name} completed: {result}")
            except Exception as e:
                logger.exception(f"[LOCAL] Task {task_name} failed: {e}")
                raise
        else:
            logger.warning(f"[LOCAL] No handler registered for task: {task_name}")

        return task_id


# =============================================================================
# Task Handlers
# =============================================================================

@register_handler("notify_task_assigned")
def handle_notify_task_assigned(task_id: str, actor_id: str = None):
    from apps.notifications import services

    notification = services.notify_task_assigned(task_id, actor_id)
    if notification is None:
        return f"No assignment notification for task {task_id}"
    return f"Notified {notification.recipient_id} about task {task_id}"


@register_handler("send_due_date_reminders")
def handle_send_due_date_reminders():
    from apps.notifications import services

    count = services.send_due_date_reminders()
    return f"Sent {count} due date reminders"

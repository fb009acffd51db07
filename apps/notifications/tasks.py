from celery import shared_task
import logging

from . import services

logger = logging.getLogger(__name__)


@shared_task
def notify_task_assigned_task(task_id, actor_id=None):
    """
    Tell a task's assignee that the task was assigned to them.
    """
    notification = services.notify_task_assigned(task_id, actor_id)
    if notification:
        logger.info(f"Assignment notification {notification.id} sent for task {task_id}")


@shared_task
def send_due_date_reminders_task():
    """
    Daily sweep (see CELERY_BEAT_SCHEDULE) for tasks due within the next day.
    """
    count = services.send_due_date_reminders()
    logger.info(f"Sent {count} due date reminders")
    return count

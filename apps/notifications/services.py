"""
In-app notifications.

Every notification goes through notify(), which honours the recipient's
notification preferences and never notifies users about their own actions.
"""
import logging
from datetime import timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import NotFound
from apps.core.pagination import PageRequest, paginate
from apps.identity.models import User
from .models import Notification, NotificationType

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=24)

# Preference switch that silences each notification type
PREFERENCE_FOR_TYPE = {
    NotificationType.TASK_ASSIGNED: 'task_updates',
    NotificationType.TASK_UPDATED: 'task_updates',
    NotificationType.COMMENT_ADDED: 'task_updates',
    NotificationType.DUE_DATE_APPROACHING: 'task_updates',
    NotificationType.PROJECT_UPDATED: 'project_updates',
}


def wants(recipient: User, notification_type: str) -> bool:
    prefs = (recipient.preferences or {}).get('notifications', {})
    if not prefs.get('in_app', True):
        return False
    return prefs.get(PREFERENCE_FOR_TYPE.get(notification_type, ''), True)


def notify(
    recipient: Optional[User],
    notification_type: str,
    title: str,
    message: str,
    target_type: str,
    target_id: UUID,
    actor: Optional[User] = None,
) -> Optional[Notification]:
    """
    Create a notification for `recipient`.

    Skipped (returns None) when there is no recipient, the recipient is
    inactive, the recipient is the actor, or their preferences opt out.
    """
    if recipient is None or not recipient.is_active:
        return None
    if actor is not None and recipient.id == actor.id:
        return None
    if not wants(recipient, notification_type):
        logger.debug(f"{recipient.id} opted out of {notification_type}")
        return None

    notification = Notification.objects.create(
        recipient=recipient,
        type=notification_type,
        title=title[:200],
        message=message,
        target_type=target_type,
        target_id=target_id,
    )
    logger.info(f"Notification {notification.type} sent to {recipient.id} for {target_type} {target_id}")
    return notification


# =============================================================================
# Task & Project Events
# =============================================================================

def notify_task_assigned(task_id, actor_id=None) -> Optional[Notification]:
    """Tell the task's current assignee that it was assigned to them."""
    from apps.tasks.models import Task

    task = Task.objects.select_related('assignee', 'project').filter(
        id=task_id, deleted_at__isnull=True
    ).first()
    if task is None or task.assignee is None:
        logger.warning(f"Task {task_id} has no assignee to notify")
        return None

    actor = User.objects.filter(id=actor_id).first() if actor_id else None
    by = f" by {actor.name}" if actor else ""
    return notify(
        task.assignee,
        NotificationType.TASK_ASSIGNED,
        title=f"New task: {task.title}",
        message=f"You were assigned \"{task.title}\" in {task.project.name}{by}.",
        target_type="Task",
        target_id=task.id,
        actor=actor,
    )


def notify_task_status_changed(task, actor: User) -> Optional[Notification]:
    return notify(
        task.assignee,
        NotificationType.TASK_UPDATED,
        title=f"Task updated: {task.title}",
        message=f"{actor.name} moved \"{task.title}\" to {task.get_status_display()}.",
        target_type="Task",
        target_id=task.id,
        actor=actor,
    )


def notify_comment_added(comment, task, actor: User) -> Optional[Notification]:
    """`task` is the TaskDTO the comment belongs to."""
    recipient = User.objects.filter(id=task.assignee_id).first()
    return notify(
        recipient,
        NotificationType.COMMENT_ADDED,
        title=f"New comment on {task.title}",
        message=comment.content[:200],
        target_type="Task",
        target_id=task.id,
        actor=actor,
    )


def notify_project_updated(project, actor: User, summary: str) -> int:
    """Notify every project member except the actor. Returns the number sent."""
    sent = 0
    for member in project.members.all():
        if notify(
            member,
            NotificationType.PROJECT_UPDATED,
            title=f"Project updated: {project.name}",
            message=summary,
            target_type="Project",
            target_id=project.id,
            actor=actor,
        ):
            sent += 1
    return sent


def send_due_date_reminders(now=None) -> int:
    """
    Remind assignees of open tasks due within the next 24 hours.

    A task is skipped if its assignee already got a reminder for it in the
    last 24 hours, so running the sweep more than once a day is harmless.
    """
    from apps.tasks.models import Task, CLOSED_TASK_STATUSES

    now = now or timezone.now()
    tasks = Task.objects.filter(
        deleted_at__isnull=True,
        project__deleted_at__isnull=True,
        assignee__isnull=False,
        due_date__gte=now,
        due_date__lte=now + REMINDER_WINDOW,
    ).exclude(status__in=CLOSED_TASK_STATUSES).select_related('assignee')

    recently_reminded = set(
        Notification.objects.filter(
            type=NotificationType.DUE_DATE_APPROACHING,
            target_type="Task",
            created_at__gte=now - REMINDER_WINDOW,
        ).values_list('target_id', flat=True)
    )

    sent = 0
    for task in tasks:
        if task.id in recently_reminded:
            continue
        hours = max(1, int((task.due_date - now).total_seconds() // 3600))
        if notify(
            task.assignee,
            NotificationType.DUE_DATE_APPROACHING,
            title=f"Due soon: {task.title}",
            message=f"\"{task.title}\" is due in about {hours} hour(s).",
            target_type="Task",
            target_id=task.id,
        ):
            sent += 1

    logger.info(f"Due date reminder sweep sent {sent} notification(s)")
    return sent


# =============================================================================
# Inbox
# =============================================================================

def list_notifications(
    user: User,
    page: PageRequest,
    unread: Optional[bool] = None,
) -> Tuple[List[Notification], int]:
    qs = Notification.objects.filter(recipient=user)
    if unread is True:
        qs = qs.filter(read_at__isnull=True)
    elif unread is False:
        qs = qs.filter(read_at__isnull=False)
    return paginate(qs.order_by('-created_at', '-id'), page)


def unread_count(user: User) -> int:
    return Notification.objects.filter(recipient=user, read_at__isnull=True).count()


def mark_read(user: User, notification_id: UUID) -> Notification:
    notification = Notification.objects.filter(id=notification_id, recipient=user).first()
    if notification is None:
        raise NotFound("Notification not found")
    if notification.read_at is None:
        notification.read_at = timezone.now()
        notification.save(update_fields=['read_at'])
    return notification


@transaction.atomic
def mark_all_read(user: User) -> int:
    return Notification.objects.filter(recipient=user, read_at__isnull=True).update(read_at=timezone.now())

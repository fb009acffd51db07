"""
Centralized audit logging service.

Use log_action() to record any mutation. It is fire-and-forget: it will
never raise, so a logging failure will never break the calling request.

Usage:
    from apps.activity.audit_service import log_action, AuditAction

    log_action(
        action=AuditAction.TASK_CREATED,
        target_type="Task",
        target_id=task.id,
        target_label=task.title,
        performed_by=request.user,
        context={"project_id": str(task.project_id)},
    )
"""
import logging
from uuid import UUID
from typing import Optional

from django.db import transaction

from .models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """
    Canonical string constants for audit log actions.
    Dotted lowercase names are also published on the live event feed.
    """
    # ── Identity ──────────────────────────────────────────────────────
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_REGISTERED = "USER_REGISTERED"
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_PREFERENCES_UPDATED = "USER_PREFERENCES_UPDATED"
    USER_DELETED = "USER_DELETED"

    # ── Projects ──────────────────────────────────────────────────────
    PROJECT_CREATED = "project.created"
    PROJECT_UPDATED = "project.updated"
    PROJECT_DELETED = "project.deleted"

    # ── Tasks ─────────────────────────────────────────────────────────
    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    TASK_DELETED = "task.deleted"

    # ── Comments & Attachments ────────────────────────────────────────
    COMMENT_CREATED = "comment.created"
    COMMENT_UPDATED = "comment.updated"
    COMMENT_DELETED = "comment.deleted"
    ATTACHMENT_ADDED = "attachment.added"
    ATTACHMENT_DELETED = "attachment.deleted"


EVENT_ACTIONS = (
    AuditAction.PROJECT_CREATED,
    AuditAction.PROJECT_UPDATED,
    AuditAction.PROJECT_DELETED,
    AuditAction.TASK_CREATED,
    AuditAction.TASK_UPDATED,
    AuditAction.TASK_DELETED,
    AuditAction.COMMENT_CREATED,
    AuditAction.COMMENT_UPDATED,
    AuditAction.COMMENT_DELETED,
    AuditAction.ATTACHMENT_ADDED,
    AuditAction.ATTACHMENT_DELETED,
)


def log_action(
    *,
    action: str,
    target_type: str,
    target_id: UUID,
    performed_by,
    target_label: str = "",
    context: Optional[dict] = None,
) -> Optional[AuditLog]:
    """
    Create an AuditLog entry.

    Never raises: failures are logged and swallowed so audit logging never
    degrades the user-facing request. The insert runs in a savepoint so a
    failure does not poison an enclosing transaction.

    Args:
        action:        Action constant from AuditAction (e.g. "task.created").
        target_type:   Type of the object acted on (e.g. "Task").
        target_id:     Primary key of the object acted on.
        performed_by:  User instance or None for system actions.
        target_label:  Optional human-readable description of the object.
        context:       Optional JSON-serializable dict of additional metadata.

    Returns:
        The created AuditLog instance, or None if creation failed.
    """
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                action=action,
                target_type=target_type,
                target_id=target_id,
                target_label=(target_label or "")[:255],
                performed_by=performed_by,
                context=context or {},
            )
    except Exception:
        logger.exception(f"Failed to write audit log {action} for {target_type} {target_id}")
        return None

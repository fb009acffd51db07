"""Services for Tasks app: listing, CRUD with optimistic locking, comments."""
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from django.db import transaction
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils import timezone

from apps.activity.audit_service import log_action, AuditAction
from apps.core import cache, dates
from apps.core.exceptions import NotFound, PermissionDenied, ValidationFailed, ErrorCode, version_conflict
from apps.core.pagination import PageRequest, paginate, resolve_ordering
from apps.core.task_service import TaskService
from apps.identity.models import User, UserRole
from apps.identity.permissions import Permissions, has_perm
from apps.notifications import services as notifications
from apps.projects.models import Project, CLOSED_PROJECT_STATUSES
from apps.projects.services import accessible_project_ids, get_accessible_project
from .dtos import TaskDTO, CommentDTO
from .models import Task, TaskComment, TaskStatus, TaskPriority, TASK_TRANSITIONS, CLOSED_TASK_STATUSES
from .schemas import TaskCreateIn, TaskUpdateIn, CommentIn, CommentUpdateIn

logger = logging.getLogger(__name__)

TASK_SORT_FIELDS = ('created_at', 'updated_at', 'due_date', 'priority', 'status', 'title')

# Sort priority by severity rather than alphabetically
PRIORITY_RANK = Case(
    When(priority=TaskPriority.LOW, then=Value(0)),
    When(priority=TaskPriority.MEDIUM, then=Value(1)),
    When(priority=TaskPriority.HIGH, then=Value(2)),
    When(priority=TaskPriority.CRITICAL, then=Value(3)),
    output_field=IntegerField(),
)


def to_task_dto(task: Task) -> TaskDTO:
    return TaskDTO(
        id=task.id,
        title=task.title,
        description=task.description,
        project_id=task.project_id,
        assignee_id=task.assignee_id,
        created_by_id=task.created_by_id,
        updated_by_id=task.updated_by_id,
        status=task.status,
        priority=task.priority,
        due_date=task.due_date,
        completed_at=task.completed_at,
        estimated_hours=task.estimated_hours,
        actual_hours=task.actual_hours,
        metadata=task.metadata,
        version=task.version,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def live_tasks():
    """Tasks that are not deleted and whose project is not deleted."""
    return Task.objects.filter(deleted_at__isnull=True, project__deleted_at__isnull=True)


def visible_tasks(user: User):
    qs = live_tasks()
    if not has_perm(user, Permissions.PROJECT_VIEW_ALL):
        qs = qs.filter(project_id__in=accessible_project_ids(user))
    return qs


def get_task_dto(task_id) -> Optional[TaskDTO]:
    """Cache-aside lookup of a live task."""
    def load():
        task = live_tasks().filter(id=task_id).first()
        return to_task_dto(task) if task else None

    return cache.get_or_set(cache.task_key(task_id), load)


def get_task(user: User, task_id: UUID) -> TaskDTO:
    """Return the task if it exists and `user` may see its project."""
    task = get_task_dto(task_id)
    if task is None:
        raise NotFound("Task not found")
    get_accessible_project(user, task.project_id)
    return task


# =============================================================================
# Listing
# =============================================================================

def list_tasks(
    user: User,
    page: PageRequest,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    project_id: Optional[UUID] = None,
    assignee_id: Optional[UUID] = None,
    search: Optional[str] = None,
    due_after: Optional[datetime] = None,
    due_before: Optional[datetime] = None,
    overdue: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> Tuple[List[TaskDTO], int]:
    qs = visible_tasks(user)

    if status:
        qs = qs.filter(status=status)
    if priority:
        qs = qs.filter(priority=priority)
    if project_id:
        qs = qs.filter(project_id=project_id)
    if assignee_id:
        qs = qs.filter(assignee_id=assignee_id)
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
    if due_after:
        qs = qs.filter(due_date__gte=dates.to_aware(due_after))
    if due_before:
        qs = qs.filter(due_date__lte=dates.to_aware(due_before))

    overdue_q = Q(due_date__lt=timezone.now()) & ~Q(status__in=CLOSED_TASK_STATUSES)
    if overdue is True:
        qs = qs.filter(overdue_q)
    elif overdue is False:
        qs = qs.exclude(overdue_q)

    ordering = resolve_ordering(sort_by, sort_order, TASK_SORT_FIELDS)
    if ordering[0].lstrip('-') == 'priority':
        qs = qs.annotate(priority_rank=PRIORITY_RANK)
        ordering[0] = ordering[0].replace('priority', 'priority_rank')

    tasks, total = paginate(qs.order_by(*ordering), page)
    return [to_task_dto(t) for t in tasks], total


# =============================================================================
# CRUD
# =============================================================================

def _check_assignee(project: Project, assignee_id: UUID) -> User:
    """The assignee must be an active member (or the owner) of the project."""
    assignee = User.objects.filter(id=assignee_id, deleted_at__isnull=True).first()
    is_member = assignee is not None and (
        project.owner_id == assignee.id or project.members.filter(id=assignee.id).exists()
    )
    if not is_member or not assignee.is_active:
        raise ValidationFailed(
            "Assignee must be an active member of the project",
            code=ErrorCode.INVALID_INPUT,
            details={"assignee_id": str(assignee_id)},
        )
    return assignee


def _check_due_date(due_date: datetime) -> datetime:
    due_date = dates.to_aware(due_date)
    if dates.is_in_past(due_date):
        raise ValidationFailed(
            "Due date cannot be in the past",
            code=ErrorCode.INVALID_INPUT,
            details={"due_date": due_date.isoformat()},
        )
    return due_date


def create_task(actor: User, payload: TaskCreateIn) -> TaskDTO:
    get_accessible_project(actor, payload.project_id)

    with transaction.atomic():
        project = Project.objects.select_for_update().get(id=payload.project_id)
        if project.status in CLOSED_PROJECT_STATUSES:
            raise ValidationFailed(
                f"Cannot add tasks to a {project.status.lower()} project",
                code=ErrorCode.INVALID_INPUT,
                details={"project_status": project.status},
            )

        assignee = _check_assignee(project, payload.assignee_id) if payload.assignee_id else None
        due_date = _check_due_date(payload.due_date) if payload.due_date else None

        task = Task.objects.create(
            title=payload.title,
            description=payload.description,
            project=project,
            assignee=assignee,
            created_by=actor,
            updated_by=actor,
            priority=payload.priority,
            due_date=due_date,
            estimated_hours=payload.estimated_hours,
            metadata=payload.metadata,
        )
        if assignee:
            transaction.on_commit(lambda: TaskService.notify_task_assigned(task.id, actor.id))

    cache.invalidate(cache.project_key(project.id))
    logger.info(f"Task {task.id} created in project {project.id} by {actor.id}")
    log_action(
        action=AuditAction.TASK_CREATED,
        target_type="Task",
        target_id=task.id,
        target_label=task.title,
        performed_by=actor,
        context={
            "project_id": str(project.id),
            "assignee_id": str(assignee.id) if assignee else None,
            "priority": task.priority,
        },
    )
    return to_task_dto(task)


def _lock_task(actor: User, task_id) -> Task:
    task = live_tasks().select_for_update().select_related('project').filter(id=task_id).first()
    if task is None:
        raise NotFound("Task not found")
    get_accessible_project(actor, task.project_id)
    return task


def can_update_task(actor: User, task: Task) -> bool:
    if has_perm(actor, Permissions.TASK_UPDATE):
        return True
    return has_perm(actor, Permissions.TASK_UPDATE_OWN) and task.assignee_id == actor.id


def _check_transition(current: str, target: str) -> None:
    allowed = TASK_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValidationFailed(
            f"Cannot move task from {current} to {target}",
            code=ErrorCode.INVALID_INPUT,
            details={"from": current, "to": target, "allowed": sorted(allowed)},
        )


def update_task(actor: User, task_id: UUID, payload: TaskUpdateIn) -> TaskDTO:
    with transaction.atomic():
        task = _lock_task(actor, task_id)
        if not can_update_task(actor, task):
            raise PermissionDenied(details={"required": Permissions.TASK_UPDATE})
        if payload.version != task.version:
            raise version_conflict(payload.version, task.version)

        changes = {}
        previous_assignee = task.assignee_id

        if payload.status is not None and payload.status != task.status:
            _check_transition(task.status, payload.status)
            changes['status'] = [task.status, payload.status]
            if payload.status == TaskStatus.COMPLETED:
                task.completed_at = timezone.now()
            elif task.status == TaskStatus.COMPLETED:
                task.completed_at = None
            task.status = payload.status

        if payload.due_date is not None:
            due_date = dates.to_aware(payload.due_date)
            if due_date != task.due_date:
                _check_due_date(due_date)
                changes['due_date'] = [
                    task.due_date.isoformat() if task.due_date else None,
                    due_date.isoformat(),
                ]
                task.due_date = due_date

        if payload.unassign:
            if task.assignee_id:
                changes['assignee_id'] = [str(task.assignee_id), None]
            task.assignee = None
        elif payload.assignee_id is not None and payload.assignee_id != task.assignee_id:
            task.assignee = _check_assignee(task.project, payload.assignee_id)
            changes['assignee_id'] = [str(previous_assignee) if previous_assignee else None, str(task.assignee_id)]

        for field in ('title', 'description', 'priority', 'estimated_hours', 'actual_hours', 'metadata'):
            value = getattr(payload, field)
            if value is not None and value != getattr(task, field):
                old = getattr(task, field)
                changes[field] = [old, value] if field in ('title', 'priority') else True
                setattr(task, field, value)

        task.updated_by = actor
        task.version += 1
        task.save()

        if task.assignee_id and task.assignee_id != previous_assignee:
            transaction.on_commit(lambda: TaskService.notify_task_assigned(task.id, actor.id))

    cache.invalidate(cache.task_key(task.id), cache.project_key(task.project_id))
    logger.info(f"Task {task.id} updated to v{task.version}")

    if 'status' in changes and task.assignee_id:
        notifications.notify_task_status_changed(task, actor)

    log_action(
        action=AuditAction.TASK_UPDATED,
        target_type="Task",
        target_id=task.id,
        target_label=task.title,
        performed_by=actor,
        context={"project_id": str(task.project_id), "changes": changes, "version": task.version},
    )
    return to_task_dto(task)


def delete_task(actor: User, task_id: UUID) -> None:
    with transaction.atomic():
        task = _lock_task(actor, task_id)
        task.deleted_at = timezone.now()
        task.updated_by = actor
        task.version += 1
        task.save(update_fields=['deleted_at', 'updated_by', 'version', 'updated_at'])

    cache.invalidate(cache.task_key(task.id), cache.project_key(task.project_id))
    logger.info(f"Task {task.id} deleted by {actor.id}")
    log_action(
        action=AuditAction.TASK_DELETED,
        target_type="Task",
        target_id=task.id,
        target_label=task.title,
        performed_by=actor,
        context={"project_id": str(task.project_id)},
    )


# =============================================================================
# Comments
# =============================================================================

def to_comment_dto(comment: TaskComment) -> CommentDTO:
    author = comment.author
    return CommentDTO(
        id=comment.id,
        task_id=comment.task_id,
        author_id=comment.author_id,
        author_name=(author.name or author.email) if author else None,
        parent_id=comment.parent_id,
        content=comment.content,
        edited=comment.edited,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


def list_comments(user: User, task_id: UUID) -> List[CommentDTO]:
    """All live comments on a task, oldest first. Clients thread them by parent_id."""
    get_task(user, task_id)
    comments = TaskComment.objects.filter(
        task_id=task_id, deleted_at__isnull=True
    ).select_related('author').order_by('created_at', 'id')
    return [to_comment_dto(c) for c in comments]


def add_comment(actor: User, task_id: UUID, payload: CommentIn) -> CommentDTO:
    task = get_task(actor, task_id)

    parent = None
    if payload.parent_id:
        parent = TaskComment.objects.filter(
            id=payload.parent_id, task_id=task.id, deleted_at__isnull=True
        ).first()
        if parent is None:
            raise ValidationFailed(
                "Parent comment must belong to the same task",
                code=ErrorCode.INVALID_INPUT,
                details={"parent_id": str(payload.parent_id)},
            )

    comment = TaskComment.objects.create(
        task_id=task.id,
        author=actor,
        parent=parent,
        content=payload.content,
    )

    logger.info(f"Comment {comment.id} added to task {task.id}")
    if task.assignee_id and task.assignee_id != actor.id:
        notifications.notify_comment_added(comment, task, actor)

    log_action(
        action=AuditAction.COMMENT_CREATED,
        target_type="TaskComment",
        target_id=comment.id,
        target_label=task.title,
        performed_by=actor,
        context={
            "project_id": str(task.project_id),
            "task_id": str(task.id),
            "parent_id": str(parent.id) if parent else None,
        },
    )
    return to_comment_dto(comment)


def _get_own_comment(actor: User, task_id: UUID, comment_id: UUID) -> TaskComment:
    get_task(actor, task_id)
    comment = TaskComment.objects.select_related('author', 'task').filter(
        id=comment_id, task_id=task_id, deleted_at__isnull=True
    ).first()
    if comment is None:
        raise NotFound("Comment not found")
    if comment.author_id != actor.id and actor.role != UserRole.ADMIN:
        raise PermissionDenied("Only the author can change this comment")
    return comment


def update_comment(actor: User, task_id: UUID, comment_id: UUID, payload: CommentUpdateIn) -> CommentDTO:
    comment = _get_own_comment(actor, task_id, comment_id)
    comment.content = payload.content
    comment.edited = True
    comment.save(update_fields=['content', 'edited', 'updated_at'])

    log_action(
        action=AuditAction.COMMENT_UPDATED,
        target_type="TaskComment",
        target_id=comment.id,
        performed_by=actor,
        context={"project_id": str(comment.task.project_id), "task_id": str(task_id)},
    )
    return to_comment_dto(comment)


def delete_comment(actor: User, task_id: UUID, comment_id: UUID) -> None:
    comment = _get_own_comment(actor, task_id, comment_id)
    comment.deleted_at = timezone.now()
    comment.save(update_fields=['deleted_at', 'updated_at'])

    log_action(
        action=AuditAction.COMMENT_DELETED,
        target_type="TaskComment",
        target_id=comment.id,
        performed_by=actor,
        context={"project_id": str(comment.task.project_id), "task_id": str(task_id)},
    )

"""Services for Projects app: access control, CRUD with optimistic locking."""
import logging
from typing import List, Optional, Tuple
from uuid import UUID

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.activity.audit_service import log_action, AuditAction
from apps.core import cache
from apps.core.exceptions import NotFound, PermissionDenied, ValidationFailed, ErrorCode, version_conflict
from apps.core.pagination import PageRequest, paginate, resolve_ordering
from apps.identity.models import User
from apps.identity.permissions import Permissions, has_perm
from apps.notifications import services as notifications
from apps.tasks.models import TaskStatus
from .dtos import ProjectDTO
from .models import Project, PROJECT_TRANSITIONS
from .schemas import ProjectCreateIn, ProjectUpdateIn

logger = logging.getLogger(__name__)

PROJECT_SORT_FIELDS = ('created_at', 'updated_at', 'name', 'status', 'priority', 'start_date', 'end_date')


def _annotated(qs):
    live = Q(tasks__deleted_at__isnull=True) & ~Q(tasks__status=TaskStatus.ARCHIVED)
    return qs.annotate(
        task_count=Count('tasks', filter=live, distinct=True),
        completed_task_count=Count(
            'tasks', filter=live & Q(tasks__status=TaskStatus.COMPLETED), distinct=True
        ),
    ).prefetch_related('members')


def to_project_dto(project: Project) -> ProjectDTO:
    return ProjectDTO(
        id=project.id,
        name=project.name,
        description=project.description,
        owner_id=project.owner_id,
        member_ids=tuple(sorted((m.id for m in project.members.all()), key=str)),
        status=project.status,
        priority=project.priority,
        start_date=project.start_date,
        end_date=project.end_date,
        settings=project.settings,
        version=project.version,
        created_at=project.created_at,
        updated_at=project.updated_at,
        task_count=getattr(project, 'task_count', 0),
        completed_task_count=getattr(project, 'completed_task_count', 0),
    )


def get_project_dto(project_id) -> Optional[ProjectDTO]:
    """Cache-aside lookup of a live project."""
    def load():
        try:
            project = _annotated(Project.objects.filter(deleted_at__isnull=True)).get(id=project_id)
        except Project.DoesNotExist:
            return None
        return to_project_dto(project)

    return cache.get_or_set(cache.project_key(project_id), load)


def can_access(user: User, project: ProjectDTO) -> bool:
    return has_perm(user, Permissions.PROJECT_VIEW_ALL) or project.is_member(user.id)


def get_accessible_project(user: User, project_id) -> ProjectDTO:
    """Return the project if it exists and `user` may see it."""
    project = get_project_dto(project_id)
    if project is None:
        raise NotFound("Project not found")
    if not can_access(user, project):
        raise PermissionDenied("You do not have access to this project", code=ErrorCode.AUTHORIZATION_ERROR)
    return project


def accessible_project_ids(user: User):
    """Subquery of project ids visible to a user without the view-all permission."""
    memberships = Project.members.through.objects.filter(user_id=user.id).values('project_id')
    return Project.objects.filter(Q(owner_id=user.id) | Q(id__in=memberships)).values('id')


def list_projects(
    user: User,
    page: PageRequest,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    owner_id: Optional[UUID] = None,
    member_id: Optional[UUID] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> Tuple[List[ProjectDTO], int]:
    qs = Project.objects.filter(deleted_at__isnull=True)

    if not has_perm(user, Permissions.PROJECT_VIEW_ALL):
        qs = qs.filter(id__in=accessible_project_ids(user))

    if status:
        qs = qs.filter(status=status)
    if priority:
        qs = qs.filter(priority=priority)
    if owner_id:
        qs = qs.filter(owner_id=owner_id)
    if member_id:
        qs = qs.filter(id__in=Project.members.through.objects.filter(user_id=member_id).values('project_id'))
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(description__icontains=search))

    ordering = resolve_ordering(sort_by, sort_order, PROJECT_SORT_FIELDS)
    projects, total = paginate(_annotated(qs).order_by(*ordering), page)
    return [to_project_dto(p) for p in projects], total


def _resolve_members(member_ids, owner: User) -> List[User]:
    """Validate member ids (duplicates dropped) and make sure the owner is included."""
    wanted = set(member_ids)
    users = list(User.objects.filter(id__in=wanted, deleted_at__isnull=True))
    missing = wanted - {u.id for u in users}
    if missing:
        raise ValidationFailed(
            "Unknown team members",
            code=ErrorCode.INVALID_INPUT,
            details={"member_ids": sorted(str(m) for m in missing)},
        )
    if owner.id not in wanted:
        users.append(owner)
    return users


def create_project(actor: User, payload: ProjectCreateIn) -> ProjectDTO:
    with transaction.atomic():
        members = _resolve_members(payload.member_ids, actor)
        project = Project.objects.create(
            name=payload.name,
            description=payload.description,
            owner=actor,
            priority=payload.priority,
            start_date=payload.start_date,
            end_date=payload.end_date,
            settings=payload.settings,
        )
        project.members.set(members)

    logger.info(f"Project {project.id} created by {actor.id}")
    log_action(
        action=AuditAction.PROJECT_CREATED,
        target_type="Project",
        target_id=project.id,
        target_label=project.name,
        performed_by=actor,
        context={"name": project.name, "status": project.status, "members": len(members)},
    )
    return get_project_dto(project.id)


def _lock_project(actor: User, project_id) -> Project:
    try:
        project = Project.objects.select_for_update().get(id=project_id, deleted_at__isnull=True)
    except Project.DoesNotExist:
        raise NotFound("Project not found")

    is_member = project.owner_id == actor.id or project.members.filter(id=actor.id).exists()
    if not is_member and not has_perm(actor, Permissions.PROJECT_VIEW_ALL):
        raise PermissionDenied("You do not have access to this project", code=ErrorCode.AUTHORIZATION_ERROR)
    return project


def update_project(actor: User, project_id: UUID, payload: ProjectUpdateIn) -> ProjectDTO:
    with transaction.atomic():
        project = _lock_project(actor, project_id)
        if payload.version != project.version:
            raise version_conflict(payload.version, project.version)

        changes = {}

        if payload.status is not None and payload.status != project.status:
            allowed = PROJECT_TRANSITIONS.get(project.status, set())
            if payload.status not in allowed:
                raise ValidationFailed(
                    f"Cannot move project from {project.status} to {payload.status}",
                    code=ErrorCode.INVALID_INPUT,
                    details={"from": project.status, "to": payload.status, "allowed": sorted(allowed)},
                )
            changes['status'] = [project.status, payload.status]
            project.status = payload.status

        start = payload.start_date or project.start_date
        end = payload.end_date or project.end_date
        if end < start:
            raise ValidationFailed(
                "End date must not be before start date",
                code=ErrorCode.INVALID_INPUT,
                details={"start_date": str(start), "end_date": str(end)},
            )
        if start != project.start_date:
            changes['start_date'] = [str(project.start_date), str(start)]
        if end != project.end_date:
            changes['end_date'] = [str(project.end_date), str(end)]
        project.start_date, project.end_date = start, end

        for field in ('name', 'description', 'priority', 'settings'):
            value = getattr(payload, field)
            if value is not None and value != getattr(project, field):
                changes[field] = True if field in ('description', 'settings') else [getattr(project, field), value]
                setattr(project, field, value)

        if payload.member_ids is not None:
            members = _resolve_members(payload.member_ids, project.owner)
            project.members.set(members)
            changes['members'] = len(members)

        project.version += 1
        project.save()

    cache.invalidate(cache.project_key(project.id))
    logger.info(f"Project {project.id} updated to v{project.version}")
    if 'status' in changes:
        notifications.notify_project_updated(
            project, actor, f"{actor.name} moved {project.name} to {project.get_status_display()}."
        )
    log_action(
        action=AuditAction.PROJECT_UPDATED,
        target_type="Project",
        target_id=project.id,
        target_label=project.name,
        performed_by=actor,
        context={"changes": changes, "version": project.version},
    )
    return get_project_dto(project.id)


def delete_project(actor: User, project_id: UUID) -> int:
    """Soft delete the project and every live task in it. Returns the number of tasks removed."""
    with transaction.atomic():
        project = _lock_project(actor, project_id)
        now = timezone.now()
        task_ids = list(project.tasks.filter(deleted_at__isnull=True).values_list('id', flat=True))
        project.tasks.filter(id__in=task_ids).update(deleted_at=now)
        project.deleted_at = now
        project.version += 1
        project.save(update_fields=['deleted_at', 'version', 'updated_at'])

    cache.invalidate(cache.project_key(project.id), *(cache.task_key(t) for t in task_ids))
    logger.info(f"Project {project.id} deleted with {len(task_ids)} task(s)")
    log_action(
        action=AuditAction.PROJECT_DELETED,
        target_type="Project",
        target_id=project.id,
        target_label=project.name,
        performed_by=actor,
        context={"tasks_deleted": len(task_ids)},
    )
    return len(task_ids)

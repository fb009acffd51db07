from datetime import datetime
from typing import Optional
from uuid import UUID

from ninja import Router, Query
from django.http import HttpRequest

from apps.core.pagination import page_request, page_meta, DEFAULT_PAGE_SIZE
from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from apps.tasks import services as task_services
from apps.tasks.schemas import TaskPageOut
from .schemas import ProjectCreateIn, ProjectUpdateIn, ProjectOut, ProjectPageOut
from . import services

router = Router(tags=["Projects"])


@router.get("/", response=ProjectPageOut, auth=None)
@has_permission(Permissions.PROJECT_VIEW)
def list_projects(
    request: HttpRequest,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    owner_id: Optional[UUID] = None,
    member_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, max_length=100),
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    """
    List projects. Managers see every project; everyone else sees the
    projects they own or belong to.
    """
    page_req = page_request(page, limit)
    items, total = services.list_projects(
        request.user,
        page_req,
        status=status,
        priority=priority,
        owner_id=owner_id,
        member_id=member_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, **page_meta(total, page_req)}


@router.post("/", response={201: ProjectOut}, auth=None)
@has_permission(Permissions.PROJECT_CREATE)
def create_project(request: HttpRequest, payload: ProjectCreateIn):
    """Create a project owned by the caller. The owner is always a member."""
    return 201, services.create_project(request.user, payload)


@router.get("/{uuid:project_id}", response=ProjectOut, auth=None)
@has_permission(Permissions.PROJECT_VIEW)
def get_project(request: HttpRequest, project_id: UUID):
    return services.get_accessible_project(request.user, project_id)


@router.put("/{uuid:project_id}", response=ProjectOut, auth=None)
@has_permission(Permissions.PROJECT_UPDATE)
def update_project(request: HttpRequest, project_id: UUID, payload: ProjectUpdateIn):
    """Partial update. `version` must match the stored version."""
    return services.update_project(request.user, project_id, payload)


@router.delete("/{uuid:project_id}", response={204: None}, auth=None)
@has_permission(Permissions.PROJECT_DELETE)
def delete_project(request: HttpRequest, project_id: UUID):
    """Soft delete the project together with its tasks."""
    services.delete_project(request.user, project_id)
    return 204, None


@router.get("/{uuid:project_id}/tasks", response=TaskPageOut, auth=None)
@has_permission(Permissions.TASK_VIEW)
def list_project_tasks(
    request: HttpRequest,
    project_id: UUID,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assignee_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, max_length=100),
    due_after: Optional[datetime] = None,
    due_before: Optional[datetime] = None,
    overdue: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    services.get_accessible_project(request.user, project_id)
    page_req = page_request(page, limit)
    items, total = task_services.list_tasks(
        request.user,
        page_req,
        project_id=project_id,
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        search=search,
        due_after=due_after,
        due_before=due_before,
        overdue=overdue,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, **page_meta(total, page_req)}

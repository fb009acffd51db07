"""Queries over the audit log: paginated history and the polled event feed."""
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from django.db.models import Q

from apps.core.pagination import PageRequest, paginate
from apps.identity.models import User
from apps.identity.permissions import Permissions, has_perm
from apps.projects.services import accessible_project_ids
from .audit_service import EVENT_ACTIONS
from .models import AuditLog

MAX_EVENTS = 200


def list_audit_logs(
    page: PageRequest,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[UUID] = None,
    performed_by: Optional[UUID] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Tuple[List[AuditLog], int]:
    qs = AuditLog.objects.select_related('performed_by')

    if action:
        qs = qs.filter(action=action)
    if target_type:
        qs = qs.filter(target_type=target_type)
    if target_id:
        qs = qs.filter(target_id=target_id)
    if performed_by:
        qs = qs.filter(performed_by_id=performed_by)
    if start:
        qs = qs.filter(performed_at__gte=start)
    if end:
        qs = qs.filter(performed_at__lte=end)

    return paginate(qs.order_by('-performed_at', 'id'), page)


def _visible_events(qs, user: User):
    """Restrict the feed to projects the user owns or belongs to."""
    if has_perm(user, Permissions.PROJECT_VIEW_ALL):
        return qs
    project_ids = [str(pid) for pid in accessible_project_ids(user).values_list('id', flat=True)]
    return qs.filter(
        Q(target_type="Project", target_id__in=project_ids)
        | Q(context__project_id__in=project_ids)
    )


def list_events(
    user: User,
    since: Optional[datetime] = None,
    after: Optional[UUID] = None,
    limit: int = 50,
    entity: Optional[str] = None,
    entity_id: Optional[UUID] = None,
) -> List[AuditLog]:
    """
    Events after the (since, after) cursor, oldest first.

    Clients poll with the timestamp and id of the last event they saw.
    Without `after`, every event at exactly `since` is treated as seen.
    """
    qs = _visible_events(AuditLog.objects.filter(action__in=EVENT_ACTIONS), user)
    if since and after:
        qs = qs.filter(Q(performed_at__gt=since) | Q(performed_at=since, id__gt=after))
    elif since:
        qs = qs.filter(performed_at__gt=since)
    if entity:
        qs = qs.filter(target_type=entity)
    if entity_id:
        qs = qs.filter(target_id=entity_id)

    limit = max(1, min(limit, MAX_EVENTS))
    return list(qs.order_by('performed_at', 'id')[:limit])

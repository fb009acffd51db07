"""
Task statistics for dashboards.
"""
from datetime import timedelta
from typing import Optional
from uuid import UUID

from django.db.models import Count, F, Q
from django.utils import timezone

from apps.identity.models import User
from apps.projects.services import get_accessible_project
from .dtos import TaskStatsDTO
from .models import TaskStatus, TaskPriority, CLOSED_TASK_STATUSES
from .services import visible_tasks

DUE_SOON_HOURS = 48


def get_task_stats(user: User, project_id: Optional[UUID] = None) -> TaskStatsDTO:
    """
    Counts over the tasks `user` can see, optionally limited to one project.

    `overdue` and `due_soon` only count open tasks. `completed_on_time` counts
    completed tasks that had no due date or finished before it.
    """
    queryset = visible_tasks(user)
    if project_id:
        get_accessible_project(user, project_id)
        queryset = queryset.filter(project_id=project_id)

    now = timezone.now()
    open_q = ~Q(status__in=CLOSED_TASK_STATUSES)
    completed_q = Q(status=TaskStatus.COMPLETED)

    aggregated = queryset.aggregate(
        total=Count('id'),
        overdue=Count('id', filter=open_q & Q(due_date__lt=now)),
        due_soon=Count(
            'id',
            filter=open_q & Q(due_date__gte=now, due_date__lte=now + timedelta(hours=DUE_SOON_HOURS)),
        ),
        completed_on_time=Count(
            'id',
            filter=completed_q & (Q(due_date__isnull=True) | Q(completed_at__lte=F('due_date'))),
        ),
    )

    by_status = {status: 0 for status in TaskStatus.values}
    for row in queryset.order_by().values('status').annotate(count=Count('id')):
        by_status[row['status']] = row['count']

    by_priority = {priority: 0 for priority in TaskPriority.values}
    for row in queryset.order_by().values('priority').annotate(count=Count('id')):
        by_priority[row['priority']] = row['count']

    durations = [
        (completed_at - created_at).total_seconds()
        for created_at, completed_at in queryset.filter(
            completed_q, completed_at__isnull=False
        ).values_list('created_at', 'completed_at')
    ]
    average_days = round(sum(durations) / len(durations) / 86400, 1) if durations else None

    return TaskStatsDTO(
        total=aggregated['total'],
        by_status=by_status,
        by_priority=by_priority,
        overdue=aggregated['overdue'],
        due_soon=aggregated['due_soon'],
        completed_on_time=aggregated['completed_on_time'],
        average_completion_days=average_days,
    )

import uuid
from django.db import models
from django.db.models import F, Q


class ProjectStatus(models.TextChoices):
    PLANNING = 'PLANNING', 'Planning'
    IN_PROGRESS = 'IN_PROGRESS', 'In Progress'
    ON_HOLD = 'ON_HOLD', 'On Hold'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'
    ARCHIVED = 'ARCHIVED', 'Archived'


class ProjectPriority(models.TextChoices):
    LOW = 'LOW', 'Low'
    MEDIUM = 'MEDIUM', 'Medium'
    HIGH = 'HIGH', 'High'
    CRITICAL = 'CRITICAL', 'Critical'


# Allowed status moves; ARCHIVED is terminal
PROJECT_TRANSITIONS = {
    ProjectStatus.PLANNING: {ProjectStatus.IN_PROGRESS, ProjectStatus.ON_HOLD, ProjectStatus.CANCELLED},
    ProjectStatus.IN_PROGRESS: {ProjectStatus.ON_HOLD, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED},
    ProjectStatus.ON_HOLD: {ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED},
    ProjectStatus.COMPLETED: {ProjectStatus.ARCHIVED},
    ProjectStatus.CANCELLED: {ProjectStatus.ARCHIVED},
    ProjectStatus.ARCHIVED: set(),
}

# Projects in these states accept no new tasks
CLOSED_PROJECT_STATUSES = (ProjectStatus.CANCELLED, ProjectStatus.ARCHIVED)


class Project(models.Model):
    """
    A body of work owned by one user and shared with a team.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    description = models.TextField(max_length=2000)

    owner = models.ForeignKey(
        'identity.User',
        on_delete=models.PROTECT,
        related_name='owned_projects'
    )
    members = models.ManyToManyField(
        'identity.User',
        related_name='projects',
        blank=True
    )

    status = models.CharField(
        max_length=20,
        choices=ProjectStatus.choices,
        default=ProjectStatus.PLANNING,
        db_index=True
    )
    priority = models.CharField(
        max_length=20,
        choices=ProjectPriority.choices,
        default=ProjectPriority.MEDIUM
    )
    start_date = models.DateField()
    end_date = models.DateField()
    settings = models.JSONField(default=dict, blank=True)

    version = models.PositiveIntegerField(default=1)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=Q(end_date__gte=F('start_date')),
                name='project_end_not_before_start',
            ),
        ]

    def __str__(self):
        return self.name

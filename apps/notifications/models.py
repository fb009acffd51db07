import uuid
from django.db import models


class NotificationType(models.TextChoices):
    TASK_ASSIGNED = 'TASK_ASSIGNED', 'Task Assigned'
    TASK_UPDATED = 'TASK_UPDATED', 'Task Updated'
    COMMENT_ADDED = 'COMMENT_ADDED', 'Comment Added'
    DUE_DATE_APPROACHING = 'DUE_DATE_APPROACHING', 'Due Date Approaching'
    PROJECT_UPDATED = 'PROJECT_UPDATED', 'Project Updated'


class Notification(models.Model):
    """
    In-app notification addressed to a single user.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient = models.ForeignKey(
        'identity.User',
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    type = models.CharField(max_length=30, choices=NotificationType.choices, db_index=True)
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True)
    target_type = models.CharField(max_length=50)
    target_id = models.UUIDField()
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'read_at'], name='notif_recipient_read_idx'),
            models.Index(fields=['target_type', 'target_id'], name='notif_target_idx'),
        ]

    def __str__(self):
        return f"{self.type} for {self.recipient_id}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

import uuid
from django.db import models


class AuditLog(models.Model):
    """
    Audit trail of every mutation. Entries whose action is an event type
    (e.g. `task.updated`) double as the live-update feed.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    action = models.CharField(max_length=50, db_index=True, help_text="Action performed (e.g., task.created)")
    target_type = models.CharField(max_length=50, help_text="Type of object acted on (e.g., Task)")
    target_id = models.UUIDField(help_text="ID of the object acted on")
    target_label = models.CharField(max_length=255, blank=True, help_text="Human-readable label of the object")

    # Metadata
    performed_by = models.ForeignKey(
        'identity.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    performed_at = models.DateTimeField(auto_now_add=True, db_index=True)
    context = models.JSONField(default=dict, blank=True, help_text="Additional context/metadata")

    class Meta:
        ordering = ['-performed_at']
        indexes = [
            models.Index(fields=['target_type', 'target_id'], name='auditlog_target_idx'),
        ]
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"

    def __str__(self):
        return f"{self.action} on {self.target_type} by {self.performed_by}"

import uuid
from django.db import models
from django.contrib.auth.models import AbstractUser


class UserRole(models.TextChoices):
    ADMIN = 'ADMIN', 'Administrator'
    PROJECT_MANAGER = 'PROJECT_MANAGER', 'Project Manager'
    TEAM_LEAD = 'TEAM_LEAD', 'Team Lead'
    TEAM_MEMBER = 'TEAM_MEMBER', 'Team Member'
    GUEST = 'GUEST', 'Guest'


class UserStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    INACTIVE = 'INACTIVE', 'Inactive'
    SUSPENDED = 'SUSPENDED', 'Suspended'
    PENDING = 'PENDING', 'Pending Approval'


def default_preferences() -> dict:
    return {
        'theme': 'light',
        'language': 'en',
        'notifications': {
            'email': True,
            'in_app': True,
            'task_updates': True,
            'project_updates': True,
        },
    }


class User(AbstractUser):
    """
    Application user. Signs in with email; `username` mirrors the email.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=100)
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.TEAM_MEMBER
    )
    status = models.CharField(
        max_length=20,
        choices=UserStatus.choices,
        default=UserStatus.ACTIVE,
        db_index=True
    )
    preferences = models.JSONField(default=default_preferences, blank=True)
    last_login_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        ordering = ['email']

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
            if not self.username:
                self.username = self.email
        # Login is only possible for live, active accounts
        self.is_active = self.status == UserStatus.ACTIVE and self.deleted_at is None
        super().save(*args, **kwargs)

    def __str__(self):
        return self.email


class AuthSession(models.Model):
    """
    One refresh-token lineage. Rotated on refresh, revoked on logout.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sessions')
    jti = models.CharField(max_length=64, unique=True)
    user_agent = models.CharField(max_length=255, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    expires_at = models.DateTimeField()
    revoked_at = models.DateTimeField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __str__(self):
        return f"Session {self.jti} for {self.user_id}"

"""Shared builders for tests across apps."""
from datetime import date, timedelta
from uuid import uuid4

from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User, UserRole, UserStatus
from apps.projects.models import Project
from apps.tasks.models import Task

PASSWORD = "Str0ng!Pass"


def make_user(role=UserRole.TEAM_MEMBER, email=None, status=UserStatus.ACTIVE, name="Test User"):
    email = email or f"user_{uuid4().hex[:8]}@test.com"
    return User.objects.create_user(
        username=email,
        email=email,
        password=PASSWORD,
        name=name,
        role=role,
        status=status,
    )


def auth_header(user) -> dict:
    """Client kwargs carrying a bearer access token for `user`."""
    return {"HTTP_AUTHORIZATION": f"Bearer {create_access_token(user.id, user.role)}"}


def make_project(owner, members=(), **kwargs):
    defaults = {
        "name": f"Project {uuid4().hex[:6]}",
        "description": "A project used by the test suite.",
        "start_date": date.today(),
        "end_date": date.today() + timedelta(days=30),
    }
    defaults.update(kwargs)
    project = Project.objects.create(owner=owner, **defaults)
    project.members.set([owner, *members])
    return project


def make_task(project, **kwargs):
    defaults = {"title": f"Task {uuid4().hex[:6]}", "created_by": project.owner}
    defaults.update(kwargs)
    return Task.objects.create(project=project, **defaults)

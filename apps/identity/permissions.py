from typing import List, Dict
from .models import UserRole, User

# Define all available permissions here for reference
class Permissions:
    # Tasks
    TASK_VIEW = "task.view"
    TASK_CREATE = "task.create"
    TASK_UPDATE = "task.update"
    TASK_UPDATE_OWN = "task.update_own"
    TASK_DELETE = "task.delete"
    TASK_COMMENT = "task.comment"

    # Projects
    PROJECT_VIEW = "project.view"
    PROJECT_VIEW_ALL = "project.view_all"
    PROJECT_CREATE = "project.create"
    PROJECT_UPDATE = "project.update"
    PROJECT_DELETE = "project.delete"

    # Users
    USER_VIEW = "user.view"
    USER_MANAGE = "user.manage"

    # Activity
    ACTIVITY_VIEW = "activity.view"


# Static Role -> Permission Mapping
ROLE_PERMISSIONS: Dict[str, List[str]] = {
    UserRole.ADMIN: [
        Permissions.TASK_VIEW,
        Permissions.TASK_CREATE,
        Permissions.TASK_UPDATE,
        Permissions.TASK_UPDATE_OWN,
        Permissions.TASK_DELETE,
        Permissions.TASK_COMMENT,
        Permissions.PROJECT_VIEW,
        Permissions.PROJECT_VIEW_ALL,
        Permissions.PROJECT_CREATE,
        Permissions.PROJECT_UPDATE,
        Permissions.PROJECT_DELETE,
        Permissions.USER_VIEW,
        Permissions.USER_MANAGE,
        Permissions.ACTIVITY_VIEW,
    ],
    UserRole.PROJECT_MANAGER: [
        Permissions.TASK_VIEW,
        Permissions.TASK_CREATE,
        Permissions.TASK_UPDATE,
        Permissions.TASK_UPDATE_OWN,
        Permissions.TASK_DELETE,
        Permissions.TASK_COMMENT,
        Permissions.PROJECT_VIEW,
        Permissions.PROJECT_VIEW_ALL,
        Permissions.PROJECT_CREATE,
        Permissions.PROJECT_UPDATE,
        Permissions.PROJECT_DELETE,
        Permissions.USER_VIEW,
        Permissions.ACTIVITY_VIEW,
    ],
    UserRole.TEAM_LEAD: [
        Permissions.TASK_VIEW,
        Permissions.TASK_CREATE,
        Permissions.TASK_UPDATE,
        Permissions.TASK_UPDATE_OWN,
        Permissions.TASK_COMMENT,
        Permissions.PROJECT_VIEW,
        Permissions.ACTIVITY_VIEW,
    ],
    UserRole.TEAM_MEMBER: [
        Permissions.TASK_VIEW,
        Permissions.TASK_UPDATE_OWN,
        Permissions.TASK_COMMENT,
        Permissions.PROJECT_VIEW,
    ],
    UserRole.GUEST: [
        # Read-only
        Permissions.TASK_VIEW,
        Permissions.PROJECT_VIEW,
    ],
}

# Higher rank may assign any strictly lower role
ROLE_RANK: Dict[str, int] = {
    UserRole.GUEST: 0,
    UserRole.TEAM_MEMBER: 1,
    UserRole.TEAM_LEAD: 2,
    UserRole.PROJECT_MANAGER: 3,
    UserRole.ADMIN: 4,
}


def get_user_permissions(user: User) -> List[str]:
    """
    Returns a list of permission strings for the given user based on their role.
    """
    if not user or not user.is_active:
        return []
    return ROLE_PERMISSIONS.get(user.role, [])


def has_perm(user: User, permission: str) -> bool:
    return permission in get_user_permissions(user)


def can_assign_role(actor: User, role: str) -> bool:
    """ADMIN may assign any role; everyone else only roles ranked below their own."""
    if actor.role == UserRole.ADMIN:
        return True
    return ROLE_RANK.get(role, 0) < ROLE_RANK.get(actor.role, 0)

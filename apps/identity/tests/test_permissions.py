from django.test import TestCase
from apps.core.tests.factories import make_user
from apps.identity.models import UserRole, UserStatus
from apps.identity.permissions import get_user_permissions, has_perm, can_assign_role, Permissions


class RBACTest(TestCase):
    def test_guest_is_read_only(self):
        user = make_user(role=UserRole.GUEST)
        perms = get_user_permissions(user)
        self.assertIn(Permissions.TASK_VIEW, perms)
        self.assertIn(Permissions.PROJECT_VIEW, perms)
        self.assertNotIn(Permissions.TASK_COMMENT, perms)
        self.assertNotIn(Permissions.TASK_UPDATE_OWN, perms)

    def test_team_member_updates_only_own_tasks(self):
        user = make_user(role=UserRole.TEAM_MEMBER)
        self.assertTrue(has_perm(user, Permissions.TASK_UPDATE_OWN))
        self.assertFalse(has_perm(user, Permissions.TASK_UPDATE))
        self.assertFalse(has_perm(user, Permissions.TASK_CREATE))

    def test_team_lead_cannot_delete_tasks(self):
        user = make_user(role=UserRole.TEAM_LEAD)
        self.assertTrue(has_perm(user, Permissions.TASK_CREATE))
        self.assertFalse(has_perm(user, Permissions.TASK_DELETE))
        self.assertTrue(has_perm(user, Permissions.ACTIVITY_VIEW))

    def test_project_manager_sees_users_but_cannot_manage_them(self):
        user = make_user(role=UserRole.PROJECT_MANAGER)
        self.assertTrue(has_perm(user, Permissions.USER_VIEW))
        self.assertFalse(has_perm(user, Permissions.USER_MANAGE))
        self.assertTrue(has_perm(user, Permissions.PROJECT_VIEW_ALL))

    def test_admin_permissions(self):
        user = make_user(role=UserRole.ADMIN)
        self.assertTrue(has_perm(user, Permissions.USER_MANAGE))
        self.assertTrue(has_perm(user, Permissions.TASK_DELETE))

    def test_inactive_user_has_no_permissions(self):
        user = make_user(role=UserRole.ADMIN, status=UserStatus.SUSPENDED)
        self.assertEqual(get_user_permissions(user), [])

    def test_role_assignment_rank(self):
        admin = make_user(role=UserRole.ADMIN)
        manager = make_user(role=UserRole.PROJECT_MANAGER)
        self.assertTrue(can_assign_role(admin, UserRole.ADMIN))
        self.assertTrue(can_assign_role(manager, UserRole.TEAM_LEAD))
        self.assertFalse(can_assign_role(manager, UserRole.PROJECT_MANAGER))
        self.assertFalse(can_assign_role(manager, UserRole.ADMIN))

"""
Tests for user administration: listing, creation, optimistic updates,
preferences and soft delete.
"""
from django.core.cache import cache
from django.test import TestCase, Client

from apps.core.tests.factories import make_user, auth_header
from apps.identity.models import User, UserRole, UserStatus, AuthSession
from apps.identity.auth_service import AuthService


class UserAPITest(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.admin = make_user(role=UserRole.ADMIN, email='admin@example.com', name='Admin')
        self.manager = make_user(role=UserRole.PROJECT_MANAGER, email='pm@example.com', name='Manager')
        self.member = make_user(role=UserRole.TEAM_MEMBER, email='member@example.com', name='Member')

    def test_list_requires_user_view(self):
        response = self.client.get('/api/v1/users/', **auth_header(self.member))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error']['details']['required'], 'user.view')

    def test_list_filters_and_paginates(self):
        response = self.client.get('/api/v1/users/?role=TEAM_MEMBER&limit=1', **auth_header(self.manager))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['total'], 1)
        self.assertEqual(data['items'][0]['email'], 'member@example.com')

        response = self.client.get('/api/v1/users/?search=man&sort_by=email&sort_order=asc', **auth_header(self.manager))
        self.assertEqual([u['email'] for u in response.json()['items']], ['pm@example.com'])

    def test_list_rejects_unknown_sort_field(self):
        response = self.client.get('/api/v1/users/?sort_by=password', **auth_header(self.admin))
        self.assertEqual(response.status_code, 400)

    def test_create_user_without_password_is_pending(self):
        response = self.client.post(
            '/api/v1/users/',
            data={'email': 'invitee@example.com', 'name': 'Invitee', 'role': 'TEAM_LEAD'},
            content_type='application/json',
            **auth_header(self.admin),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['status'], UserStatus.PENDING)
        user = User.objects.get(email='invitee@example.com')
        self.assertFalse(user.has_usable_password())
        self.assertFalse(user.is_active)

    def test_create_duplicate_is_conflict(self):
        response = self.client.post(
            '/api/v1/users/',
            data={'email': 'member@example.com', 'name': 'Again'},
            content_type='application/json',
            **auth_header(self.admin),
        )
        self.assertEqual(response.status_code, 409)

    def test_manager_cannot_create_users(self):
        response = self.client.post(
            '/api/v1/users/',
            data={'email': 'x@example.com', 'name': 'Someone'},
            content_type='application/json',
            **auth_header(self.manager),
        )
        self.assertEqual(response.status_code, 403)

    def test_get_self_without_user_view(self):
        response = self.client.get(f'/api/v1/users/{self.member.id}', **auth_header(self.member))
        self.assertEqual(response.status_code, 200)
        response = self.client.get(f'/api/v1/users/{self.admin.id}', **auth_header(self.member))
        self.assertEqual(response.status_code, 403)

    def test_get_by_email(self):
        response = self.client.get('/api/v1/users/by-email?email=MEMBER@example.com', **auth_header(self.manager))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['id'], str(self.member.id))
        response = self.client.get('/api/v1/users/by-email?email=ghost@example.com', **auth_header(self.manager))
        self.assertEqual(response.status_code, 404)

    def test_update_with_version(self):
        response = self.client.put(
            f'/api/v1/users/{self.member.id}',
            data={'version': 1, 'name': 'Renamed', 'role': 'TEAM_LEAD'},
            content_type='application/json',
            **auth_header(self.admin),
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['version'], 2)
        self.assertEqual(data['role'], 'TEAM_LEAD')
        self.assertIn('task.create', data['permissions'])

    def test_stale_version_is_409(self):
        self.member.version = 3
        self.member.save()
        response = self.client.put(
            f'/api/v1/users/{self.member.id}',
            data={'version': 1, 'name': 'Too Late'},
            content_type='application/json',
            **auth_header(self.admin),
        )
        self.assertEqual(response.status_code, 409)
        error = response.json()['error']
        self.assertEqual(error['code'], 1201)
        self.assertEqual(error['details'], {'expected': 1, 'actual': 3})

    def test_cannot_change_own_role(self):
        response = self.client.put(
            f'/api/v1/users/{self.admin.id}',
            data={'version': 1, 'role': 'GUEST'},
            content_type='application/json',
            **auth_header(self.admin),
        )
        self.assertEqual(response.status_code, 400)

    def test_suspending_user_revokes_sessions(self):
        AuthService.issue_tokens(self.member)
        self.client.put(
            f'/api/v1/users/{self.member.id}',
            data={'version': 1, 'status': 'SUSPENDED'},
            content_type='application/json',
            **auth_header(self.admin),
        )
        self.assertFalse(AuthSession.objects.filter(user=self.member, revoked_at__isnull=True).exists())

    def test_preferences_merge(self):
        response = self.client.put(
            f'/api/v1/users/{self.member.id}/preferences',
            data={'theme': 'dark', 'notifications': {'email': False}},
            content_type='application/json',
            **auth_header(self.member),
        )
        self.assertEqual(response.status_code, 200)
        prefs = response.json()['preferences']
        self.assertEqual(prefs['theme'], 'dark')
        self.assertEqual(prefs['language'], 'en')
        self.assertFalse(prefs['notifications']['email'])
        self.assertTrue(prefs['notifications']['in_app'])

    def test_preferences_of_others_need_user_manage(self):
        response = self.client.put(
            f'/api/v1/users/{self.manager.id}/preferences',
            data={'theme': 'dark'},
            content_type='application/json',
            **auth_header(self.member),
        )
        self.assertEqual(response.status_code, 403)

    def test_soft_delete(self):
        response = self.client.delete(f'/api/v1/users/{self.member.id}', **auth_header(self.admin))
        self.assertEqual(response.status_code, 204)
        self.member.refresh_from_db()
        self.assertIsNotNone(self.member.deleted_at)
        self.assertEqual(self.member.status, UserStatus.INACTIVE)
        self.assertFalse(self.member.is_active)

        response = self.client.get(f'/api/v1/users/{self.member.id}', **auth_header(self.admin))
        self.assertEqual(response.status_code, 404)
        # The deleted user's token no longer works
        response = self.client.get('/api/v1/auth/me', **auth_header(self.member))
        self.assertEqual(response.status_code, 401)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}', **auth_header(self.admin))
        self.assertEqual(response.status_code, 400)

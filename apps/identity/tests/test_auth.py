"""
Tests for registration, login lockout, token refresh rotation and logout.
"""
import jwt
from datetime import datetime, timedelta, timezone as dt_timezone

from django.conf import settings
from django.core.cache import cache
from django.test import TestCase, Client

from apps.activity.audit_service import AuditAction
from apps.activity.models import AuditLog
from apps.core.tests.factories import make_user, auth_header, PASSWORD
from apps.identity.models import User, UserRole, UserStatus, AuthSession


class RegisterTest(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()

    def _register(self, **overrides):
        payload = {
            'email': 'New.Person@Example.com',
            'name': 'New Person',
            'password': PASSWORD,
            'confirm_password': PASSWORD,
        }
        payload.update(overrides)
        return self.client.post('/api/v1/auth/register', data=payload, content_type='application/json')

    def test_register_creates_active_team_member(self):
        response = self._register()
        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['token_type'], 'Bearer')
        self.assertEqual(data['expires_in'], 900)
        self.assertEqual(data['user']['email'], 'new.person@example.com')
        self.assertEqual(data['user']['role'], UserRole.TEAM_MEMBER)

        user = User.objects.get(email='new.person@example.com')
        self.assertEqual(user.status, UserStatus.ACTIVE)
        self.assertTrue(user.is_active)
        self.assertEqual(AuthSession.objects.filter(user=user).count(), 1)

    def test_duplicate_email_is_conflict(self):
        make_user(email='taken@example.com')
        response = self._register(email='Taken@example.com')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error']['code'], 1202)

    def test_weak_password_rejected(self):
        response = self._register(password='weakpass', confirm_password='weakpass')
        self.assertEqual(response.status_code, 400)

    def test_password_mismatch_rejected(self):
        response = self._register(confirm_password='Other!Pass1')
        self.assertEqual(response.status_code, 400)

    def test_register_is_rate_limited_per_ip(self):
        for i in range(3):
            self.assertEqual(self._register(email=f'person{i}@example.com').status_code, 201)
        response = self._register(email='person9@example.com')
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()['error']['code'], 1400)


class LoginTest(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.user = make_user(email='worker@example.com')

    def _login(self, password=PASSWORD, email='worker@example.com'):
        return self.client.post(
            '/api/v1/auth/login',
            data={'email': email, 'password': password},
            content_type='application/json',
        )

    def test_login_success(self):
        response = self._login()
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertIn('access_token', data)
        self.assertIn('refresh_token', data)
        self.assertIn('task.view', data['user']['permissions'])

        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login_at)
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.USER_LOGIN, target_id=self.user.id).exists())

    def test_login_is_case_insensitive_on_email(self):
        self.assertEqual(self._login(email='WORKER@example.com').status_code, 200)

    def test_wrong_password(self):
        response = self._login(password='Wrong!Pass1')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error']['details']['remaining_attempts'], 4)

    def test_lockout_after_five_failures(self):
        for _ in range(5):
            self.assertEqual(self._login(password='Wrong!Pass1').status_code, 401)
        # Even the right password is refused while locked
        response = self._login()
        self.assertEqual(response.status_code, 429)

    def test_success_resets_failure_counter(self):
        for _ in range(4):
            self._login(password='Wrong!Pass1')
        self.assertEqual(self._login().status_code, 200)
        for _ in range(4):
            self._login(password='Wrong!Pass1')
        self.assertEqual(self._login().status_code, 200)

    def test_suspended_account_is_refused_with_reason(self):
        self.user.status = UserStatus.SUSPENDED
        self.user.save()
        response = self._login()
        self.assertEqual(response.status_code, 401)
        error = response.json()['error']
        self.assertEqual(error['code'], 1100)
        self.assertEqual(error['message'], 'Account is suspended')

    def test_me(self):
        response = self.client.get('/api/v1/auth/me', **auth_header(self.user))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['id'], str(self.user.id))

    def test_expired_access_token(self):
        now = datetime.now(dt_timezone.utc)
        token = jwt.encode(
            {'sub': str(self.user.id), 'role': self.user.role, 'type': 'access',
             'iat': now - timedelta(hours=1), 'exp': now - timedelta(minutes=1)},
            settings.JWT_SECRET,
            algorithm='HS256',
        )
        response = self.client.get('/api/v1/auth/me', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error']['code'], 1102)


class RefreshAndLogoutTest(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.user = make_user(email='rotator@example.com')
        response = self.client.post(
            '/api/v1/auth/login',
            data={'email': 'rotator@example.com', 'password': PASSWORD},
            content_type='application/json',
        )
        self.tokens = response.json()

    def _refresh(self, token):
        return self.client.post(
            '/api/v1/auth/refresh',
            data={'refresh_token': token},
            content_type='application/json',
        )

    def test_refresh_rotates_session(self):
        response = self._refresh(self.tokens['refresh_token'])
        self.assertEqual(response.status_code, 200)
        new_tokens = response.json()
        self.assertNotEqual(new_tokens['refresh_token'], self.tokens['refresh_token'])
        self.assertEqual(AuthSession.objects.filter(user=self.user, revoked_at__isnull=True).count(), 1)

    def test_replayed_refresh_token_revokes_everything(self):
        rotated = self._refresh(self.tokens['refresh_token']).json()
        replay = self._refresh(self.tokens['refresh_token'])
        self.assertEqual(replay.status_code, 401)
        self.assertEqual(replay.json()['error']['code'], 1103)
        # The token issued by the legitimate rotation is now dead as well
        self.assertEqual(self._refresh(rotated['refresh_token']).status_code, 401)

    def test_access_token_cannot_refresh(self):
        response = self._refresh(self.tokens['access_token'])
        self.assertEqual(response.status_code, 401)

    def test_logout_revokes_session(self):
        response = self.client.post(
            '/api/v1/auth/logout',
            data={'refresh_token': self.tokens['refresh_token']},
            content_type='application/json',
            HTTP_AUTHORIZATION=f"Bearer {self.tokens['access_token']}",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self._refresh(self.tokens['refresh_token']).status_code, 401)

    def test_logout_everywhere(self):
        self.client.post(
            '/api/v1/auth/login',
            data={'email': 'rotator@example.com', 'password': PASSWORD},
            content_type='application/json',
        )
        self.client.post(
            '/api/v1/auth/logout',
            data={'all': True},
            content_type='application/json',
            HTTP_AUTHORIZATION=f"Bearer {self.tokens['access_token']}",
        )
        self.assertFalse(AuthSession.objects.filter(user=self.user, revoked_at__isnull=True).exists())

    def test_logout_requires_auth(self):
        response = self.client.post('/api/v1/auth/logout', data={}, content_type='application/json')
        self.assertEqual(response.status_code, 401)

    def test_expired_session_cannot_refresh(self):
        AuthSession.objects.filter(user=self.user).update(
            expires_at=datetime.now(dt_timezone.utc) - timedelta(minutes=1)
        )
        response = self._refresh(self.tokens['refresh_token'])
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error']['code'], 1102)

    def test_refresh_is_rate_limited_per_ip(self):
        for _ in range(10):
            self.assertEqual(self._refresh('not-a-token').status_code, 401)
        response = self._refresh(self.tokens['refresh_token'])
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()['error']['code'], 1400)

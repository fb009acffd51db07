"""
Tests for notification delivery rules, the due-date reminder sweep and
the inbox endpoints.
"""
from datetime import timedelta

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, Client, override_settings
from django.utils import timezone

from apps.core.tests.factories import make_user, make_project, make_task, auth_header
from apps.identity.models import UserRole, UserStatus
from apps.notifications import services
from apps.notifications.models import Notification, NotificationType
from apps.tasks.models import TaskStatus


class NotifyTest(TestCase):

    def setUp(self):
        self.manager = make_user(role=UserRole.PROJECT_MANAGER)
        self.member = make_user()
        self.project = make_project(self.manager, members=[self.member])

    def _notify(self, recipient, actor=None, kind=NotificationType.TASK_UPDATED):
        return services.notify(recipient, kind, "Title", "Message", "Project", self.project.id, actor=actor)

    def test_creates_notification(self):
        notification = self._notify(self.member, actor=self.manager)
        self.assertEqual(notification.recipient, self.member)
        self.assertFalse(notification.is_read)

    def test_skips_actor_and_inactive(self):
        self.assertIsNone(self._notify(self.member, actor=self.member))
        self.member.status = UserStatus.INACTIVE
        self.member.save()
        self.assertIsNone(self._notify(self.member))

    def test_respects_preferences(self):
        self.member.preferences['notifications']['project_updates'] = False
        self.member.save()
        self.assertIsNone(self._notify(self.member, kind=NotificationType.PROJECT_UPDATED))
        self.assertIsNotNone(self._notify(self.member, kind=NotificationType.TASK_UPDATED))

        self.member.preferences['notifications']['in_app'] = False
        self.member.save()
        self.assertIsNone(self._notify(self.member, kind=NotificationType.TASK_UPDATED))


class DueDateReminderTest(TestCase):

    def setUp(self):
        self.manager = make_user(role=UserRole.PROJECT_MANAGER)
        self.member = make_user()
        self.project = make_project(self.manager, members=[self.member])
        now = timezone.now()
        self.due_soon = make_task(self.project, assignee=self.member, due_date=now + timedelta(hours=6))
        make_task(self.project, assignee=self.member, due_date=now + timedelta(days=3))
        make_task(self.project, assignee=self.member, due_date=now + timedelta(hours=2), status=TaskStatus.COMPLETED)
        make_task(self.project, due_date=now + timedelta(hours=2))

    def test_reminds_once_per_day(self):
        self.assertEqual(services.send_due_date_reminders(), 1)
        notification = Notification.objects.get(type=NotificationType.DUE_DATE_APPROACHING)
        self.assertEqual(notification.target_id, self.due_soon.id)
        # Second sweep the same day sends nothing new
        self.assertEqual(services.send_due_date_reminders(), 0)

    @override_settings(TASK_BACKEND='local')
    def test_management_command_runs_sweep(self):
        call_command('send_reminders')
        self.assertEqual(Notification.objects.filter(recipient=self.member).count(), 1)


class InboxAPITest(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.manager = make_user(role=UserRole.PROJECT_MANAGER)
        self.member = make_user()
        self.project = make_project(self.manager, members=[self.member])
        self.first = services.notify(
            self.member, NotificationType.PROJECT_UPDATED, "One", "", "Project", self.project.id
        )
        self.second = services.notify(
            self.member, NotificationType.PROJECT_UPDATED, "Two", "", "Project", self.project.id
        )

    def test_list(self):
        response = self.client.get('/api/v1/notifications/', **auth_header(self.member))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['total'], 2)
        self.assertEqual(data['unread'], 2)

    def test_mark_read(self):
        response = self.client.post(f'/api/v1/notifications/{self.first.id}/read', **auth_header(self.member))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['is_read'])

        response = self.client.get('/api/v1/notifications/?unread=true', **auth_header(self.member))
        self.assertEqual([n['title'] for n in response.json()['items']], ['Two'])

    def test_cannot_read_someone_elses(self):
        response = self.client.post(f'/api/v1/notifications/{self.first.id}/read', **auth_header(self.manager))
        self.assertEqual(response.status_code, 404)

    def test_mark_all_read(self):
        response = self.client.post('/api/v1/notifications/read-all', **auth_header(self.member))
        self.assertEqual(response.json()['updated'], 2)
        self.assertEqual(Notification.objects.filter(recipient=self.member, read_at__isnull=True).count(), 0)

"""
Integration tests for task endpoints: CRUD, filters, transitions,
optimistic locking and assignment notifications.
"""
from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase, Client
from django.utils import timezone

from apps.activity.models import AuditLog
from apps.core.tests.factories import make_user, make_project, make_task, auth_header
from apps.identity.models import UserRole, UserStatus
from apps.notifications.models import Notification, NotificationType
from apps.projects.models import ProjectStatus
from apps.tasks.models import Task, TaskStatus, TaskPriority


class TaskAPITestBase(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.manager = make_user(role=UserRole.PROJECT_MANAGER, name='Manager')
        self.lead = make_user(role=UserRole.TEAM_LEAD, name='Lead')
        self.member = make_user(role=UserRole.TEAM_MEMBER, name='Member')
        self.guest = make_user(role=UserRole.GUEST)
        self.outsider = make_user(role=UserRole.TEAM_LEAD)
        self.project = make_project(self.manager, members=[self.lead, self.member, self.guest])

    def post(self, path, data, user):
        return self.client.post(path, data=data, content_type='application/json', **auth_header(user))

    def put(self, path, data, user):
        return self.client.put(path, data=data, content_type='application/json', **auth_header(user))


class TaskCreateTest(TaskAPITestBase):

    def _payload(self, **overrides):
        payload = {
            'title': '  Write release notes  ',
            'description': 'Summarize <b>changes</b>',
            'project_id': str(self.project.id),
            'priority': 'HIGH',
            'due_date': (timezone.now() + timedelta(days=3)).isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_create_task(self):
        response = self.post('/api/v1/tasks/', self._payload(), self.lead)
        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['title'], 'Write release notes')
        self.assertEqual(data['description'], 'Summarize changes')
        self.assertEqual(data['status'], TaskStatus.TODO)
        self.assertEqual(data['version'], 1)
        self.assertIn(data['days_remaining'], (2, 3))
        self.assertFalse(data['is_overdue'])
        self.assertTrue(AuditLog.objects.filter(action='task.created', target_id=data['id']).exists())

    def test_create_notifies_assignee(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.post('/api/v1/tasks/', self._payload(assignee_id=str(self.member.id)), self.lead)
        self.assertEqual(response.status_code, 201)
        notification = Notification.objects.get(recipient=self.member)
        self.assertEqual(notification.type, NotificationType.TASK_ASSIGNED)
        self.assertEqual(str(notification.target_id), response.json()['id'])

    def test_team_member_cannot_create(self):
        response = self.post('/api/v1/tasks/', self._payload(), self.member)
        self.assertEqual(response.status_code, 403)

    def test_rejects_invalid_title(self):
        for title in ['   ', 'Drop; table', 'x' * 101]:
            with self.subTest(title=title):
                response = self.post('/api/v1/tasks/', self._payload(title=title), self.lead)
                self.assertEqual(response.status_code, 400)

    def test_rejects_past_due_date(self):
        past = (timezone.now() - timedelta(hours=1)).isoformat()
        response = self.post('/api/v1/tasks/', self._payload(due_date=past), self.lead)
        self.assertEqual(response.status_code, 400)

    def test_rejects_negative_hours(self):
        response = self.post('/api/v1/tasks/', self._payload(estimated_hours='-1'), self.lead)
        self.assertEqual(response.status_code, 400)

    def test_assignee_must_be_active_member(self):
        response = self.post('/api/v1/tasks/', self._payload(assignee_id=str(self.outsider.id)), self.lead)
        self.assertEqual(response.status_code, 400)

        self.member.status = UserStatus.SUSPENDED
        self.member.save()
        response = self.post('/api/v1/tasks/', self._payload(assignee_id=str(self.member.id)), self.lead)
        self.assertEqual(response.status_code, 400)

    def test_project_must_be_accessible(self):
        response = self.post('/api/v1/tasks/', self._payload(), self.outsider)
        self.assertEqual(response.status_code, 403)

    def test_closed_project_rejects_tasks(self):
        self.project.status = ProjectStatus.CANCELLED
        self.project.save()
        response = self.post('/api/v1/tasks/', self._payload(), self.manager)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['details']['project_status'], 'CANCELLED')


class TaskReadTest(TaskAPITestBase):

    def setUp(self):
        super().setUp()
        now = timezone.now()
        self.overdue = make_task(
            self.project, title='Overdue item', priority=TaskPriority.LOW,
            due_date=now - timedelta(days=1), assignee=self.member,
        )
        self.soon = make_task(self.project, title='Soon item', priority=TaskPriority.CRITICAL, due_date=now + timedelta(hours=5))
        self.done = make_task(
            self.project, title='Done item', status=TaskStatus.COMPLETED,
            due_date=now - timedelta(days=2), completed_at=now - timedelta(days=3),
        )
        hidden = make_project(self.manager)
        make_task(hidden, title='Hidden item')

    def test_list_only_accessible_tasks(self):
        response = self.client.get('/api/v1/tasks/', **auth_header(self.member))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['total'], 3)

        response = self.client.get('/api/v1/tasks/', **auth_header(self.manager))
        self.assertEqual(response.json()['total'], 4)

    def test_filters(self):
        def titles(query):
            response = self.client.get(f'/api/v1/tasks/?{query}', **auth_header(self.member))
            return sorted(t['title'] for t in response.json()['items'])

        self.assertEqual(titles('overdue=true'), ['Overdue item'])
        self.assertEqual(titles('status=COMPLETED'), ['Done item'])
        self.assertEqual(titles(f'assignee_id={self.member.id}'), ['Overdue item'])
        self.assertEqual(titles('search=soon'), ['Soon item'])
        self.assertEqual(titles('priority=CRITICAL'), ['Soon item'])

    def test_sort_by_priority_uses_severity(self):
        response = self.client.get('/api/v1/tasks/?sort_by=priority&sort_order=desc', **auth_header(self.member))
        self.assertEqual(response.json()['items'][0]['title'], 'Soon item')
        response = self.client.get('/api/v1/tasks/?sort_by=priority&sort_order=asc', **auth_header(self.member))
        self.assertEqual(response.json()['items'][0]['title'], 'Overdue item')

    def test_pagination(self):
        response = self.client.get('/api/v1/tasks/?page=2&limit=2', **auth_header(self.member))
        data = response.json()
        self.assertEqual((data['total'], data['page'], data['total_pages'], data['has_more']), (3, 2, 2, False))
        self.assertEqual(len(data['items']), 1)

        response = self.client.get('/api/v1/tasks/?page=0', **auth_header(self.member))
        self.assertEqual(response.status_code, 400)

    def test_get_task(self):
        response = self.client.get(f'/api/v1/tasks/{self.overdue.id}', **auth_header(self.guest))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['is_overdue'])
        self.assertLess(data['days_remaining'], 0)

        response = self.client.get(f'/api/v1/tasks/{self.overdue.id}', **auth_header(self.outsider))
        self.assertEqual(response.status_code, 403)

    def test_stats(self):
        response = self.client.get(f'/api/v1/tasks/stats?project_id={self.project.id}', **auth_header(self.member))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['total'], 3)
        self.assertEqual(data['by_status']['TODO'], 2)
        self.assertEqual(data['by_status']['COMPLETED'], 1)
        self.assertEqual(data['by_priority']['CRITICAL'], 1)
        self.assertEqual(data['overdue'], 1)
        self.assertEqual(data['due_soon'], 1)
        self.assertEqual(data['completed_on_time'], 1)


class TaskUpdateTest(TaskAPITestBase):

    def setUp(self):
        super().setUp()
        self.task = make_task(self.project, title='Build API', assignee=self.member)

    def test_transition_and_completed_at(self):
        path = f'/api/v1/tasks/{self.task.id}'
        self.assertEqual(self.put(path, {'version': 1, 'status': 'IN_PROGRESS'}, self.lead).status_code, 200)
        self.assertEqual(self.put(path, {'version': 2, 'status': 'IN_REVIEW'}, self.lead).status_code, 200)
        response = self.put(path, {'version': 3, 'status': 'COMPLETED'}, self.lead)
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.json()['completed_at'])

        response = self.put(path, {'version': 4, 'status': 'IN_PROGRESS'}, self.lead)
        self.assertIsNone(response.json()['completed_at'])
        self.assertEqual(response.json()['version'], 5)

    def test_illegal_transition(self):
        response = self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'status': 'COMPLETED'}, self.lead)
        self.assertEqual(response.status_code, 400)
        details = response.json()['error']['details']
        self.assertEqual(details['from'], 'TODO')
        self.assertEqual(details['to'], 'COMPLETED')

    def test_archived_is_terminal(self):
        self.task.status = TaskStatus.ARCHIVED
        self.task.save()
        response = self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'status': 'TODO'}, self.lead)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['details']['allowed'], [])

    def test_stale_version(self):
        self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'priority': 'HIGH'}, self.lead)
        response = self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'priority': 'LOW'}, self.lead)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error']['details'], {'expected': 1, 'actual': 2})
        self.assertEqual(Task.objects.get(id=self.task.id).priority, TaskPriority.HIGH)

    def test_assignee_may_update_own_task(self):
        response = self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'status': 'IN_PROGRESS'}, self.member)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['updated_by_id'], str(self.member.id))

    def test_member_cannot_update_others_task(self):
        other = make_task(self.project, assignee=self.lead)
        response = self.put(f'/api/v1/tasks/{other.id}', {'version': 1, 'status': 'IN_PROGRESS'}, self.member)
        self.assertEqual(response.status_code, 403)

    def test_guest_cannot_update(self):
        response = self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'priority': 'LOW'}, self.guest)
        self.assertEqual(response.status_code, 403)

    def test_reassign_notifies_new_assignee(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.put(
                f'/api/v1/tasks/{self.task.id}', {'version': 1, 'assignee_id': str(self.lead.id)}, self.manager
            )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(Notification.objects.filter(recipient=self.lead, type=NotificationType.TASK_ASSIGNED).exists())

    def test_unassign(self):
        response = self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'unassign': True}, self.lead)
        self.assertIsNone(response.json()['assignee_id'])

    def test_status_change_notifies_assignee(self):
        self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'status': 'BLOCKED'}, self.lead)
        self.assertTrue(Notification.objects.filter(recipient=self.member, type=NotificationType.TASK_UPDATED).exists())

    def test_rejects_past_due_date(self):
        past = (timezone.now() - timedelta(days=1)).isoformat()
        response = self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'due_date': past}, self.lead)
        self.assertEqual(response.status_code, 400)

    def test_update_invalidates_cached_read(self):
        self.client.get(f'/api/v1/tasks/{self.task.id}', **auth_header(self.lead))
        self.put(f'/api/v1/tasks/{self.task.id}', {'version': 1, 'title': 'Build REST API'}, self.lead)
        response = self.client.get(f'/api/v1/tasks/{self.task.id}', **auth_header(self.lead))
        self.assertEqual(response.json()['title'], 'Build REST API')

    def test_delete(self):
        response = self.client.delete(f'/api/v1/tasks/{self.task.id}', **auth_header(self.lead))
        self.assertEqual(response.status_code, 403)

        response = self.client.delete(f'/api/v1/tasks/{self.task.id}', **auth_header(self.manager))
        self.assertEqual(response.status_code, 204)
        self.assertIsNotNone(Task.objects.get(id=self.task.id).deleted_at)
        response = self.client.get(f'/api/v1/tasks/{self.task.id}', **auth_header(self.manager))
        self.assertEqual(response.status_code, 404)

"""
Tests for task comments (threading, ownership) and file attachments.
"""
import hashlib
import os
import shutil
import tempfile
from unittest import mock

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError
from django.test import TestCase, Client, override_settings

from apps.activity.audit_service import AuditAction
from apps.activity.models import AuditLog
from apps.core.tests.factories import make_user, make_project, make_task, auth_header
from apps.identity.models import UserRole
from apps.notifications.models import Notification, NotificationType
from apps.tasks import attachment_service
from apps.tasks.models import TaskAttachment, TaskComment


class CommentAPITest(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.admin = make_user(role=UserRole.ADMIN)
        self.manager = make_user(role=UserRole.PROJECT_MANAGER, name='Manager')
        self.member = make_user(role=UserRole.TEAM_MEMBER, name='Member')
        self.other = make_user(role=UserRole.TEAM_MEMBER, name='Other')
        self.guest = make_user(role=UserRole.GUEST)
        self.project = make_project(self.manager, members=[self.member, self.other, self.guest])
        self.task = make_task(self.project, assignee=self.member)
        self.path = f'/api/v1/tasks/{self.task.id}/comments'

    def _comment(self, user, content='Looks good to me', parent_id=None):
        data = {'content': content}
        if parent_id:
            data['parent_id'] = parent_id
        return self.client.post(self.path, data=data, content_type='application/json', **auth_header(user))

    def test_add_and_list_threaded_comments(self):
        root = self._comment(self.other).json()
        reply = self._comment(self.member, 'Thanks!', parent_id=root['id'])
        self.assertEqual(reply.status_code, 201)
        self.assertEqual(reply.json()['parent_id'], root['id'])

        response = self.client.get(self.path, **auth_header(self.guest))
        self.assertEqual(response.status_code, 200)
        self.assertEqual([c['content'] for c in response.json()], ['Looks good to me', 'Thanks!'])
        self.assertEqual(response.json()[0]['author_name'], 'Other')

    def test_comment_notifies_assignee_but_not_self(self):
        self._comment(self.other)
        self._comment(self.member)
        notes = Notification.objects.filter(recipient=self.member, type=NotificationType.COMMENT_ADDED)
        self.assertEqual(notes.count(), 1)

    def test_notifications_respect_preferences(self):
        self.member.preferences['notifications']['task_updates'] = False
        self.member.save()
        self._comment(self.other)
        self.assertFalse(Notification.objects.filter(recipient=self.member).exists())

    def test_parent_must_belong_to_same_task(self):
        other_task = make_task(self.project)
        foreign = TaskComment.objects.create(task=other_task, author=self.other, content='Elsewhere')
        response = self._comment(self.member, parent_id=str(foreign.id))
        self.assertEqual(response.status_code, 400)

    def test_guest_cannot_comment(self):
        self.assertEqual(self._comment(self.guest).status_code, 403)

    def test_empty_comment_rejected(self):
        self.assertEqual(self._comment(self.member, content='<p> </p>').status_code, 400)

    def test_only_author_or_admin_edits(self):
        comment = self._comment(self.other).json()
        path = f"{self.path}/{comment['id']}"

        response = self.client.put(path, data={'content': 'Hijacked'}, content_type='application/json',
                                   **auth_header(self.member))
        self.assertEqual(response.status_code, 403)

        response = self.client.put(path, data={'content': 'Edited'}, content_type='application/json',
                                   **auth_header(self.other))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['edited'])

        response = self.client.delete(path, **auth_header(self.admin))
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get(self.path, **auth_header(self.other)).json(), [])

    def test_comment_events_carry_project(self):
        comment = self._comment(self.other).json()
        self.client.put(f"{self.path}/{comment['id']}", data={'content': 'Edited'},
                        content_type='application/json', **auth_header(self.other))

        logs = AuditLog.objects.filter(target_id=comment['id'])
        self.assertEqual(
            {log.action for log in logs}, {AuditAction.COMMENT_CREATED, AuditAction.COMMENT_UPDATED}
        )
        for log in logs:
            self.assertEqual(log.context['project_id'], str(self.project.id))


class AttachmentAPITest(TestCase):

    def setUp(self):
        cache.clear()
        self.media_root = tempfile.mkdtemp()
        self.settings_override = override_settings(MEDIA_ROOT=self.media_root)
        self.settings_override.enable()
        self.client = Client()
        self.manager = make_user(role=UserRole.PROJECT_MANAGER)
        self.member = make_user(role=UserRole.TEAM_MEMBER)
        self.other = make_user(role=UserRole.TEAM_MEMBER)
        self.project = make_project(self.manager, members=[self.member, self.other])
        self.task = make_task(self.project, assignee=self.member)
        self.path = f'/api/v1/tasks/{self.task.id}/attachments'

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def _upload(self, user, content=b'hello world', name='notes.txt', content_type='text/plain'):
        upload = SimpleUploadedFile(name, content, content_type=content_type)
        return self.client.post(self.path, data={'file': upload}, **auth_header(user))

    def test_upload_list_download(self):
        response = self._upload(self.member)
        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['file_size'], 11)
        self.assertEqual(data['content_hash'], hashlib.sha256(b'hello world').hexdigest())

        listing = self.client.get(self.path, **auth_header(self.other)).json()
        self.assertEqual([a['id'] for a in listing], [data['id']])

        response = self.client.get(f"{self.path}/{data['id']}/download", **auth_header(self.other))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(b''.join(response.streaming_content), b'hello world')
        self.assertIn('notes.txt', response['Content-Disposition'])

    def test_rejects_disallowed_type(self):
        response = self._upload(self.member, name='run.exe', content_type='application/x-msdownload')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['code'], 1002)

    def test_rejects_empty_file(self):
        self.assertEqual(self._upload(self.member, content=b'').status_code, 400)

    def test_rejects_oversized_file(self):
        response = self._upload(self.member, content=b'x' * (10 * 1024 * 1024 + 1))
        self.assertEqual(response.status_code, 400)

    def test_non_assignee_member_cannot_upload(self):
        self.assertEqual(self._upload(self.other).status_code, 403)

    def test_delete_by_uploader_removes_file(self):
        data = self._upload(self.member).json()
        attachment = TaskAttachment.objects.get(id=data['id'])
        storage, name = attachment.file.storage, attachment.file.name

        response = self.client.delete(f"{self.path}/{data['id']}", **auth_header(self.other))
        self.assertEqual(response.status_code, 403)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(f"{self.path}/{data['id']}", **auth_header(self.member))
        self.assertEqual(response.status_code, 204)
        self.assertFalse(TaskAttachment.objects.filter(id=data['id']).exists())
        self.assertFalse(storage.exists(name))

    def test_upload_is_logged_against_project(self):
        data = self._upload(self.member).json()
        log = AuditLog.objects.get(action=AuditAction.ATTACHMENT_ADDED, target_id=data['id'])
        self.assertEqual(log.context['project_id'], str(self.project.id))

    def test_failed_insert_removes_stored_file(self):
        upload = SimpleUploadedFile('notes.txt', b'hello world', content_type='text/plain')
        with mock.patch.object(TaskAttachment, 'save', side_effect=DatabaseError("insert failed")):
            with self.assertRaises(DatabaseError):
                attachment_service.upload_attachment(self.member, self.task.id, upload)

        stored = [name for _, _, files in os.walk(self.media_root) for name in files]
        self.assertEqual(stored, [])
        self.assertFalse(TaskAttachment.objects.exists())

from django.core.management.base import BaseCommand

from apps.core.task_service import TaskService


class Command(BaseCommand):
    help = 'Queue the due date reminder sweep (normally run daily by Celery beat).'

    def handle(self, *args, **options):
        job_id = TaskService.send_due_date_reminders()
        self.stdout.write(self.style.SUCCESS(f'Queued due date reminders (job {job_id})'))

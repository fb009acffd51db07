"""
Celery configuration for Taskflow.
"""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Celery Beat Schedule
app.conf.beat_schedule = {
    'send-due-date-reminders': {
        'task': 'apps.notifications.tasks.send_due_date_reminders_task',
        'schedule': crontab(hour='8', minute='0'),
    },
}

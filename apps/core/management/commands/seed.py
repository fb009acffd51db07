from datetime import date, timedelta
from decimal import Decimal
from django.utils import timezone
from django.core.management.base import BaseCommand
from django.db import transaction

from apps.identity.models import User, UserRole, UserStatus
from apps.projects.models import Project, ProjectStatus, ProjectPriority
from apps.tasks.models import Task, TaskComment, TaskStatus, TaskPriority

DEMO_PASSWORD = 'Passw0rd!'

DEMO_USERS = [
    {'email': 'admin@taskflow.local', 'name': 'Ada Admin', 'role': UserRole.ADMIN},
    {'email': 'pm@taskflow.local', 'name': 'Pat Manager', 'role': UserRole.PROJECT_MANAGER},
    {'email': 'lead@taskflow.local', 'name': 'Lee Lead', 'role': UserRole.TEAM_LEAD},
    {'email': 'member@taskflow.local', 'name': 'Max Member', 'role': UserRole.TEAM_MEMBER},
    {'email': 'guest@taskflow.local', 'name': 'Gil Guest', 'role': UserRole.GUEST},
]


class Command(BaseCommand):
    help = 'Seeds the database with demo users, a project and its tasks.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clean',
            action='store_true',
            help='Delete existing demo data before seeding',
        )
        parser.add_argument(
            '--users',
            action='store_true',
            help='Seed users only',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clean']:
            self.stdout.write(self.style.WARNING('Cleaning database...'))
            self._clean_database()
            self.stdout.write(self.style.SUCCESS('Database cleaned.'))

        users = self._seed_users()

        if not options['users']:
            project = self._seed_project(users)
            self._seed_tasks(project, users)

        self.stdout.write(self.style.SUCCESS('Seeding completed successfully.'))

    def _clean_database(self):
        Task.objects.all().delete()
        Project.objects.all().delete()
        User.objects.exclude(is_superuser=True).filter(email__endswith='@taskflow.local').delete()

    def _seed_users(self):
        users = {}
        for entry in DEMO_USERS:
            user, created = User.objects.get_or_create(
                email=entry['email'],
                defaults={'name': entry['name'], 'role': entry['role'], 'status': UserStatus.ACTIVE},
            )
            if entry['role'] == UserRole.ADMIN:
                user.is_staff = True
                user.is_superuser = True

            if created:
                user.set_password(DEMO_PASSWORD)
                user.save()
                self.stdout.write(self.style.SUCCESS(f'Created user: {user.email} (Role: {user.role})'))
            else:
                user.save()
                self.stdout.write(self.style.WARNING(f'Updated user: {user.email}'))
            users[entry['role']] = user
        return users

    def _seed_project(self, users):
        today = date.today()
        project, created = Project.objects.get_or_create(
            name='Website Relaunch',
            deleted_at__isnull=True,
            defaults={
                'description': 'Redesign and relaunch the public marketing website.',
                'owner': users[UserRole.PROJECT_MANAGER],
                'status': ProjectStatus.IN_PROGRESS,
                'priority': ProjectPriority.HIGH,
                'start_date': today,
                'end_date': today + timedelta(days=60),
            },
        )
        project.members.add(
            users[UserRole.PROJECT_MANAGER],
            users[UserRole.TEAM_LEAD],
            users[UserRole.TEAM_MEMBER],
            users[UserRole.GUEST],
        )
        label = 'Created' if created else 'Using existing'
        self.stdout.write(f'{label} project: {project.name}')
        return project

    def _seed_tasks(self, project, users):
        if project.tasks.exists():
            self.stdout.write(self.style.WARNING('Project already has tasks, skipping.'))
            return

        now = timezone.now()
        lead, member = users[UserRole.TEAM_LEAD], users[UserRole.TEAM_MEMBER]
        rows = [
            ('Draft sitemap', TaskStatus.COMPLETED, TaskPriority.MEDIUM, lead, -2, '4'),
            ('Design homepage mockups', TaskStatus.IN_REVIEW, TaskPriority.HIGH, member, 3, '12'),
            ('Migrate blog content', TaskStatus.IN_PROGRESS, TaskPriority.MEDIUM, member, 1, '8'),
            ('Set up analytics', TaskStatus.TODO, TaskPriority.LOW, None, 14, '3'),
            ('Fix SSL certificate renewal', TaskStatus.BLOCKED, TaskPriority.CRITICAL, lead, 5, '2'),
        ]

        for title, status, priority, assignee, due_in_days, hours in rows:
            task = Task.objects.create(
                project=project,
                title=title,
                description=f'{title} for the relaunch.',
                status=status,
                priority=priority,
                assignee=assignee,
                created_by=users[UserRole.PROJECT_MANAGER],
                due_date=now + timedelta(days=due_in_days),
                completed_at=now - timedelta(days=3) if status == TaskStatus.COMPLETED else None,
                estimated_hours=Decimal(hours),
            )
            if assignee:
                TaskComment.objects.create(
                    task=task,
                    author=users[UserRole.PROJECT_MANAGER],
                    content=f'{assignee.name}, please keep this one moving.',
                )

        self.stdout.write(self.style.SUCCESS(f'Created {len(rows)} tasks'))

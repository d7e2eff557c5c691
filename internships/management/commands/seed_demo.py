from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from students.models import CustomUser
from tasks.models import Task
from internships.models import Internship, Enrollment
from tasks.utils import unlock_first_task

DEMO_ADMIN_EMAIL = 'admin@lms.com'
DEMO_STUDENT_EMAIL = 'demo.student@lms.com'
DEMO_INTERNSHIP_TITLE = 'Full Stack Web Development Internship'

TASK_OUTLINE = [
    ('Setup Development Environment',
     'Install Node.js, VS Code and Git, then create your first repository.'),
    ('HTML & CSS Fundamentals',
     'Build a responsive portfolio page using Flexbox and Grid.'),
    ('JavaScript Basics',
     'Practice variables, functions, arrays, objects and DOM manipulation.'),
    ('React.js Introduction',
     'Build your first React application with components, props and state.'),
    ('React Hooks & State Management',
     'Use useState, useEffect and useContext to build a todo application.'),
]


class Command(BaseCommand):
    help = 'Create a demo admin, a demo student and a sample internship with sequential tasks'

    def add_arguments(self, parser):
        parser.add_argument('--tasks', type=int, default=5, help='Number of tasks to create (default 5)')
        parser.add_argument('--reset', action='store_true', help='Delete the demo internship before seeding')

    @transaction.atomic
    def handle(self, *args, **options):
        task_count = max(1, options['tasks'])

        if options['reset']:
            deleted, _ = Internship.objects.filter(title=DEMO_INTERNSHIP_TITLE).delete()
            self.stdout.write(f"Removed {deleted} demo rows")

        admin = CustomUser.objects.filter(email=DEMO_ADMIN_EMAIL).first()
        if admin is None:
            admin = CustomUser.objects.create_superuser(
                email=DEMO_ADMIN_EMAIL, password='admin123', name='System Administrator'
            )
            self.stdout.write(self.style.SUCCESS(f"Admin created: {admin.email} / admin123"))

        student = CustomUser.objects.filter(email=DEMO_STUDENT_EMAIL).first()
        if student is None:
            student = CustomUser.objects.create_user(
                email=DEMO_STUDENT_EMAIL, password='student123', name='Demo Student'
            )
            self.stdout.write(self.style.SUCCESS(f"Student created: {student.email} / student123"))

        internship, created = Internship.objects.get_or_create(
            title=DEMO_INTERNSHIP_TITLE,
            defaults={
                'description': 'A 35-day programme covering React.js, Node.js, databases and deployment.',
                'cover_image': 'https://images.unsplash.com/photo-1517077304055-6e89abbf09b0?w=800',
                'duration_days': 35,
                'pass_percentage': 75.0,
                'certificate_price': Decimal('499.00'),
                'created_by': admin,
            }
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f"Internship created: {internship.title}"))

        for number in range(1, task_count + 1):
            if number <= len(TASK_OUTLINE):
                title, description = TASK_OUTLINE[number - 1]
            else:
                title, description = f"Project Milestone {number}", f"Ship milestone {number} of your capstone project."
            _, task_created = Task.objects.get_or_create(
                internship=internship,
                task_number=number,
                defaults={
                    'title': title,
                    'description': description,
                    'submission_type': Task.TYPE_GITHUB,
                    'resources': [{'name': f"Task {number} guide", 'url': 'https://example.com/guide.pdf', 'type': 'pdf'}],
                }
            )
            if task_created:
                self.stdout.write(f"Task {number} created: {title}")

        enrollment, created = Enrollment.objects.get_or_create(student=student, internship=internship)
        if created:
            unlock_first_task(enrollment)
            self.stdout.write(f"Enrolled {student.email} in {internship.title}")

        self.stdout.write(self.style.SUCCESS('Demo data ready'))

from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from admin_panel.models import AdminActivity
from students.models import CustomUser
from tasks.models import Task, TaskUnlock
from .models import Internship, Enrollment


class InternshipAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin_user = CustomUser.objects.create_superuser(email='admin@test.com', password='admin123')
        self.student = CustomUser.objects.create_user(email='student@test.com', password='student123', name='Ada')
        self.internship = Internship.objects.create(title='Data Science Internship', certificate_price='499.00')
        self.hidden = Internship.objects.create(title='Archived Internship', is_active=False)
        for number in (1, 2):
            Task.objects.create(internship=self.internship, task_number=number, title=f"Task {number}")

    def test_public_list_shows_active_only(self):
        response = self.client.get('/api/internships/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = [item['title'] for item in response.data]
        self.assertIn('Data Science Internship', titles)
        self.assertNotIn('Archived Internship', titles)

    def test_detail_includes_task_outline(self):
        response = self.client.get(f'/api/internships/{self.internship.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_tasks'], 2)
        self.assertEqual(len(response.data['tasks']), 2)

    def test_staff_sees_inactive_internships(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.get('/api/internships/')
        self.assertEqual(len(response.data), 2)

    def test_student_cannot_create_internship(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post('/api/internships/', {'title': 'New'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_internship(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(
            '/api/internships/',
            {'title': 'Mobile Internship', 'duration_days': 30, 'pass_percentage': 80, 'certificate_price': '299.00'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], self.admin_user.id)
        self.assertTrue(AdminActivity.objects.filter(model_name='Internship', action='CREATE').exists())

    def test_invalid_pass_percentage_rejected(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post('/api/internships/', {'title': 'Bad', 'pass_percentage': 120}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_enroll_unlocks_first_task(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/internships/{self.internship.id}/enroll/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['first_task']['task_number'], 1)
        self.assertEqual(response.data['guidelines']['total_tasks'], 2)

        enrollment = Enrollment.objects.get(student=self.student, internship=self.internship)
        unlock = TaskUnlock.objects.get(enrollment=enrollment)
        self.assertTrue(unlock.is_unlocked)
        self.assertEqual(unlock.task.task_number, 1)

    def test_duplicate_enrollment_rejected(self):
        Enrollment.objects.create(student=self.student, internship=self.internship)
        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/internships/{self.internship.id}/enroll/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Already enrolled in this internship")

    def test_concurrent_duplicate_enrollment_rejected(self):
        Enrollment.objects.create(student=self.student, internship=self.internship)
        self.client.force_authenticate(user=self.student)
        # Another request created the row between the check and the insert
        with mock.patch('django.db.models.query.QuerySet.exists', return_value=False):
            response = self.client.post(f'/api/internships/{self.internship.id}/enroll/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Enrollment.objects.filter(student=self.student).count(), 1)

    def test_delete_internship_with_enrollments_refused(self):
        Enrollment.objects.create(
            student=self.student, internship=self.internship,
            is_completed=True, certificate_eligible=True, certificate_purchased=True,
        )
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.delete(f'/api/internships/{self.internship.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Enrollment.objects.filter(internship=self.internship).exists())

        response = self.client.delete(f'/api/internships/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AdminActivity.objects.filter(model_name='Internship', action='DELETE').exists())

    def test_enroll_in_inactive_internship(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/internships/{self.hidden.id}/enroll/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_enroll_requires_authentication(self):
        response = self.client.post(f'/api/internships/{self.internship.id}/enroll/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_my_enrollments_and_progress(self):
        self.client.force_authenticate(user=self.student)
        self.client.post(f'/api/internships/{self.internship.id}/enroll/')

        response = self.client.get('/api/internships/my/enrollments/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['progress']['total_tasks'], 2)

        response = self.client.get(f'/api/internships/{self.internship.id}/progress/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['completed_tasks'], 0)
        self.assertIn('score_breakdown', response.data)

    def test_progress_without_enrollment(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/internships/{self.internship.id}/progress/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SeedDemoCommandTestCase(TestCase):
    def test_seed_creates_demo_data(self):
        out = StringIO()
        call_command('seed_demo', tasks=3, stdout=out)

        internship = Internship.objects.get(title='Full Stack Web Development Internship')
        self.assertEqual(internship.tasks.count(), 3)
        student = CustomUser.objects.get(email='demo.student@lms.com')
        self.assertTrue(Enrollment.objects.filter(student=student, internship=internship).exists())
        self.assertTrue(CustomUser.objects.get(email='admin@lms.com').is_superadmin)

        # Running twice must not duplicate anything
        call_command('seed_demo', tasks=3, stdout=out)
        self.assertEqual(Internship.objects.filter(title='Full Stack Web Development Internship').count(), 1)

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework import status

from internships.models import Internship, Enrollment
from students.models import CustomUser
from .models import AdminActivity, Notification
from .utils import create_notification, notify_admins


class AdminPanelTestCase(TestCase):
    def setUp(self):
        self.admin_user = CustomUser.objects.create_superuser(email='admin@test.com', password='admin123')
        self.staff_user = CustomUser.objects.create_user(
            email='staff@test.com', password='staff123', is_staff_admin=True
        )
        self.student_user = CustomUser.objects.create_user(
            email='student@test.com', password='student123', name='Linus'
        )
        self.client = APIClient()

    def test_dashboard_stats_authenticated(self):
        """Test dashboard stats endpoint with authentication"""
        internship = Internship.objects.create(title='QA Internship')
        Enrollment.objects.create(student=self.student_user, internship=internship)
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.get('/api/admin-panel/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_students'], 1)
        self.assertEqual(response.data['total_enrollments'], 1)

    def test_dashboard_stats_unauthenticated(self):
        """Test dashboard stats endpoint without authentication"""
        response = self.client.get('/api/admin-panel/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_dashboard_forbidden_for_students(self):
        self.client.force_authenticate(user=self.student_user)
        response = self.client.get('/api/admin-panel/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dashboard_analytics(self):
        self.client.force_authenticate(user=self.staff_user)
        for endpoint in ('recent_students', 'revenue_analytics', 'internship_stats'):
            response = self.client.get(f'/api/admin-panel/dashboard/{endpoint}/')
            self.assertEqual(response.status_code, status.HTTP_200_OK, endpoint)

    def test_new_student_broadcast(self):
        """Registering a student notifies staff, creating staff does not"""
        broadcasts = Notification.objects.filter(created_for__isnull=True, title="New Student Registration")
        self.assertEqual(broadcasts.count(), 1)
        self.assertIn('student@test.com', broadcasts.first().message)

    def test_notification_scoping(self):
        create_notification("Personal", "Only for the student", user=self.student_user)
        notify_admins("Staff only", "Broadcast to staff")

        self.client.force_authenticate(user=self.student_user)
        response = self.client.get('/api/notifications/')
        titles = [n['title'] for n in response.data]
        self.assertIn("Personal", titles)
        self.assertNotIn("Staff only", titles)

        self.client.force_authenticate(user=self.staff_user)
        response = self.client.get('/api/notifications/')
        titles = [n['title'] for n in response.data]
        self.assertIn("Staff only", titles)
        self.assertNotIn("Personal", titles)

    def test_mark_notifications_read(self):
        notification = create_notification("Personal", "Hello", user=self.student_user)
        self.client.force_authenticate(user=self.student_user)

        response = self.client.post(f'/api/notifications/{notification.id}/mark_read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        notification.refresh_from_db()
        self.assertTrue(notification.is_read)

        self.client.post('/api/notifications/mark_all_read/')
        response = self.client.get('/api/notifications/unread_count/')
        self.assertEqual(response.data['count'], 0)

    def test_delete_own_notification(self):
        mine = create_notification("Personal", "Hello", user=self.student_user)
        broadcast = notify_admins("Staff only", "Broadcast to staff")

        self.client.force_authenticate(user=self.staff_user)
        response = self.client.delete(f'/api/notifications/{mine.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.delete(f'/api/notifications/{broadcast.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(user=self.student_user)
        response = self.client.delete(f'/api/notifications/{mine.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Notification.objects.filter(pk=mine.id).exists())

    def test_recent_students_clamps_limit(self):
        self.client.force_authenticate(user=self.staff_user)
        response = self.client.get('/api/admin-panel/dashboard/recent_students/', {'limit': -5})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_export_students_csv(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post('/api/admin-panel/export/', {'type': 'students'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        content = response.content.decode()
        self.assertIn('student@test.com', content)
        self.assertNotIn('staff@test.com', content)
        self.assertTrue(AdminActivity.objects.filter(action='EXPORT').exists())

    def test_export_unknown_type(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post('/api/admin-panel/export/', {'type': 'submissions'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_toggle_student_active(self):
        self.client.force_authenticate(user=self.staff_user)
        response = self.client.post(f'/api/admin-panel/students/{self.student_user.id}/toggle_active/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.student_user.refresh_from_db()
        self.assertFalse(self.student_user.is_active)

    def test_bulk_deactivate_requires_ids(self):
        self.client.force_authenticate(user=self.staff_user)
        response = self.client.post('/api/admin-panel/students/bulk_deactivate/', {'student_ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            '/api/admin-panel/students/bulk_deactivate/',
            {'student_ids': [self.student_user.id, self.staff_user.id]}, format='json'
        )
        self.assertEqual(response.data['updated'], 1)

    def test_toggle_staff_role(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(
            '/api/admin-panel/toggle-staff-role/',
            {'user_id': self.student_user.id, 'is_staff_admin': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.student_user.refresh_from_db()
        self.assertTrue(self.student_user.is_staff_admin)

        response = self.client.post(
            '/api/admin-panel/toggle-staff-role/',
            {'user_id': self.admin_user.id, 'is_staff_admin': False}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_toggle_staff_role_requires_superadmin(self):
        self.client.force_authenticate(user=self.staff_user)
        response = self.client.post(
            '/api/admin-panel/toggle-staff-role/',
            {'user_id': self.student_user.id, 'is_staff_admin': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_activity_logging(self):
        """Test admin activity logging"""
        activity = AdminActivity.objects.create(
            admin=self.admin_user,
            action='CREATE',
            model_name='Internship',
            description="Created new internship"
        )
        self.assertEqual(activity.action, 'CREATE')
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.get('/api/admin-panel/activities/', {'action': 'CREATE'})
        self.assertEqual(response.data['count'], 1)

from datetime import timedelta
from unittest import mock

from django.core import mail
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient
from rest_framework.throttling import ScopedRateThrottle

from admin_panel.models import Notification
from .models import CustomUser, EmailOTP


class RegistrationTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_register_student(self):
        response = self.client.post('/api/auth/register/', {
            'name': 'Katherine Johnson',
            'email': 'Katherine@Test.com',
            'password': 'secret123',
            'phone_number': '+91 98765 43210',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('token', response.data)

        user = CustomUser.objects.get(email='katherine@test.com')
        self.assertTrue(user.user_code.startswith(f"INT{timezone.now().year}"))
        self.assertEqual(user.phone_number, '+919876543210')
        self.assertEqual(user.role, CustomUser.ROLE_STUDENT)
        self.assertTrue(Notification.objects.filter(created_for=user, title="Welcome aboard!").exists())

    def test_duplicate_email_rejected(self):
        CustomUser.objects.create_user(email='taken@test.com', password='secret123')
        response = self.client.post('/api/auth/register/', {
            'name': 'Someone Else', 'email': 'TAKEN@test.com', 'password': 'secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_invalid_name_rejected(self):
        response = self.client.post('/api/auth/register/', {
            'name': 'R2-D2 <script>', 'email': 'droid@test.com', 'password': 'secret123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_codes_are_sequential(self):
        first = CustomUser.objects.create_user(email='one@test.com', password='secret123')
        second = CustomUser.objects.create_user(email='two@test.com', password='secret123')
        admin = CustomUser.objects.create_superuser(email='boss@test.com', password='secret123')
        year = timezone.now().year
        self.assertEqual(first.user_code, f"INT{year}001")
        self.assertEqual(second.user_code, f"INT{year}002")
        self.assertEqual(admin.user_code, f"ADM{year}001")


class LoginTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.user = CustomUser.objects.create_user(email='ada@test.com', password='secret123', name='Ada')

    def test_login_returns_token(self):
        response = self.client.post('/api/auth/login/', {'email': 'ADA@test.com', 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['token'], Token.objects.get(user=self.user).key)
        self.assertEqual(response.data['user']['email'], 'ada@test.com')

    def test_login_with_wrong_password(self):
        response = self.client.post('/api/auth/login/', {'email': 'ada@test.com', 'password': 'wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_user_cannot_login(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/auth/login/', {'email': 'ada@test.com', 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_profile_requires_token(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        token = Token.objects.get(user=self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_logout_revokes_token(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/auth/logout/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Token.objects.filter(user=self.user).exists())


class PasswordResetTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.user = CustomUser.objects.create_user(email='alan@test.com', password='oldpass123', name='Alan')

    def request_otp(self):
        response = self.client.post('/api/auth/forgot-password/', {'email': 'alan@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return EmailOTP.objects.filter(user=self.user, is_used=False).latest('created_at')

    def test_unknown_email(self):
        response = self.client.post('/api/auth/forgot-password/', {'email': 'nobody@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_reset_with_valid_otp(self):
        otp = self.request_otp()
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(otp.code, mail.outbox[0].body)

        response = self.client.post('/api/auth/reset-password/', {
            'email': 'alan@test.com', 'otp': otp.code, 'new_password': 'newpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass123'))

        # The code cannot be used twice
        response = self.client.post('/api/auth/reset-password/', {
            'email': 'alan@test.com', 'otp': otp.code, 'new_password': 'another123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_wrong_otp_counts_attempts(self):
        otp = self.request_otp()
        wrong = '000000' if otp.code != '000000' else '111111'
        response = self.client.post('/api/auth/reset-password/', {
            'email': 'alan@test.com', 'otp': wrong, 'new_password': 'newpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['attempts_remaining'], 4)

    def test_expired_otp(self):
        otp = self.request_otp()
        otp.expires_at = timezone.now() - timedelta(minutes=1)
        otp.save()
        response = self.client.post('/api/auth/reset-password/', {
            'email': 'alan@test.com', 'otp': otp.code, 'new_password': 'newpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "OTP expired.")

    def test_new_request_retires_old_code(self):
        first = self.request_otp()
        self.request_otp()
        first.refresh_from_db()
        self.assertTrue(first.is_used)


class UserManagementTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.superadmin = CustomUser.objects.create_superuser(email='root@test.com', password='secret123')
        self.student = CustomUser.objects.create_user(email='pupil@test.com', password='secret123')

    def test_students_cannot_list_users(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get('/api/auth/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_role(self):
        self.client.force_authenticate(user=self.superadmin)
        response = self.client.get('/api/auth/users/', {'role': CustomUser.ROLE_STUDENT})
        self.assertEqual([u['email'] for u in response.data], ['pupil@test.com'])

    def test_toggle_staff_role(self):
        self.client.force_authenticate(user=self.superadmin)
        response = self.client.post(f'/api/auth/users/{self.student.id}/toggle_staff_role/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_staff_admin'])
        self.student.refresh_from_db()
        self.assertEqual(self.student.role, CustomUser.ROLE_ADMIN)


class AuthThrottleTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        CustomUser.objects.create_user(email='grace@test.com', password='secret123')

    def test_forgot_password_is_throttled(self):
        with mock.patch.object(ScopedRateThrottle, 'THROTTLE_RATES', {'auth': '2/hour'}):
            for _ in range(2):
                response = self.client.post('/api/auth/forgot-password/', {'email': 'grace@test.com'}, format='json')
                self.assertEqual(response.status_code, status.HTTP_200_OK)
            response = self.client.post('/api/auth/forgot-password/', {'email': 'grace@test.com'}, format='json')
            self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

            # Login shares the same bucket
            response = self.client.post('/api/auth/login/', {'email': 'grace@test.com', 'password': 'secret123'}, format='json')
            self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(len(mail.outbox), 2)

import os
import shutil
import tempfile

from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from admin_panel.models import AdminActivity
from internships.models import Internship, Enrollment
from students.models import CustomUser
from .models import Certificate
from .utils import issue_certificate

MEDIA_ROOT = tempfile.mkdtemp()


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class CertificateTestCase(TestCase):
    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        self.client = APIClient()
        self.admin_user = CustomUser.objects.create_superuser(email='admin@test.com', password='admin123')
        self.student = CustomUser.objects.create_user(
            email='student@test.com', password='student123', name='Grace Hopper'
        )
        self.internship = Internship.objects.create(title='Python Internship')
        self.enrollment = Enrollment.objects.create(
            student=self.student,
            internship=self.internship,
            is_completed=True,
            completion_date=timezone.now(),
            final_score=91.0,
            certificate_eligible=True,
            certificate_purchased=True,
        )

    def test_issue_certificate(self):
        certificate = issue_certificate(self.enrollment, issued_by=self.admin_user)
        self.assertRegex(certificate.certificate_number, r'^CERT-\d{4}-\d{6}$')
        self.assertEqual(certificate.final_score, 91.0)
        self.assertTrue(os.path.exists(certificate.certificate_file.path))
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(certificate.certificate_number, mail.outbox[0].body)

    def test_issue_is_idempotent(self):
        first = issue_certificate(self.enrollment)
        second = issue_certificate(self.enrollment)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Certificate.objects.count(), 1)

    def test_issue_requires_completion(self):
        self.enrollment.is_completed = False
        with self.assertRaisesMessage(ValueError, "Internship not completed yet"):
            issue_certificate(self.enrollment)

    def test_issue_requires_passing_score(self):
        self.enrollment.certificate_eligible = False
        with self.assertRaisesMessage(ValueError, "below the pass percentage"):
            issue_certificate(self.enrollment)

    def test_issue_requires_payment(self):
        self.enrollment.certificate_purchased = False
        with self.assertRaisesMessage(ValueError, "fee has not been paid"):
            issue_certificate(self.enrollment)

    def test_admin_generate_endpoint(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(f'/api/certificates/generate/{self.enrollment.id}/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(AdminActivity.objects.filter(model_name='Certificate', action='CREATE').exists())

        response = self.client.post(f'/api/certificates/generate/{self.enrollment.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], "Certificate already issued")

    def test_generate_for_unpaid_enrollment(self):
        self.enrollment.certificate_purchased = False
        self.enrollment.save()
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(f'/api/certificates/generate/{self.enrollment.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_public_verification(self):
        certificate = issue_certificate(self.enrollment)
        response = self.client.get(f'/api/certificates/verify/{certificate.certificate_number}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['certificate']['student_name'], 'Grace Hopper')

        response = self.client.get('/api/certificates/verify/CERT-1999-000000/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['valid'])

    def test_revoked_certificate(self):
        certificate = issue_certificate(self.enrollment)
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(
            f'/api/certificates/{certificate.id}/revoke/', {'reason': 'Plagiarised submissions'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(f'/api/certificates/{certificate.id}/revoke/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(user=None)
        response = self.client.get(f'/api/certificates/verify/{certificate.certificate_number}/')
        self.assertFalse(response.data['valid'])

        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/certificates/{certificate.id}/download/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_student_sees_own_certificates(self):
        certificate = issue_certificate(self.enrollment)
        other = CustomUser.objects.create_user(email='other@test.com', password='other123')

        self.client.force_authenticate(user=self.student)
        response = self.client.get('/api/certificates/my/')
        self.assertEqual(len(response.data), 1)

        response = self.client.get(f'/api/certificates/{certificate.id}/download/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response.close()

        self.client.force_authenticate(user=other)
        response = self.client.get(f'/api/certificates/{certificate.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_student_cannot_revoke(self):
        certificate = issue_certificate(self.enrollment)
        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/certificates/{certificate.id}/revoke/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_resend_certificate_email(self):
        certificate = issue_certificate(self.enrollment)
        mail.outbox.clear()

        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/certificates/{certificate.id}/resend/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['student@test.com'])

        other = CustomUser.objects.create_user(email='other@test.com', password='other123')
        self.client.force_authenticate(user=other)
        response = self.client.post(f'/api/certificates/{certificate.id}/resend/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        certificate.is_revoked = True
        certificate.save()
        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/certificates/{certificate.id}/resend/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_generate(self):
        second_student = CustomUser.objects.create_user(email='second@test.com', password='second123')
        Enrollment.objects.create(
            student=second_student, internship=self.internship, is_completed=True,
            final_score=75.0, certificate_eligible=True, certificate_purchased=True,
        )
        unpaid_student = CustomUser.objects.create_user(email='unpaid@test.com', password='unpaid123')
        Enrollment.objects.create(
            student=unpaid_student, internship=self.internship, is_completed=True,
            final_score=80.0, certificate_eligible=True,
        )

        self.client.force_authenticate(user=self.student)
        response = self.client.post('/api/certificates/bulk-generate/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(
            '/api/certificates/bulk-generate/', {'internship_id': self.internship.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['generated']), 2)
        self.assertEqual(response.data['failed'], [])
        self.assertFalse(Certificate.objects.filter(student=unpaid_student).exists())

        # Nothing left to issue on a second run
        response = self.client.post('/api/certificates/bulk-generate/', {}, format='json')
        self.assertEqual(response.data['generated'], [])

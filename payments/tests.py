import hashlib
import hmac
import json
import shutil
import tempfile
from decimal import Decimal
from unittest import mock

import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from admin_panel.models import Notification
from certificates.models import Certificate
from internships.models import Internship, Enrollment
from students.models import CustomUser
from . import gateway
from .models import Payment, PaymentReceipt

MEDIA_ROOT = tempfile.mkdtemp()
KEY_SECRET = 'rzp_test_secret'
WEBHOOK_SECRET = 'rzp_webhook_secret'


def signature_for(secret, message):
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def order_response(order_id='order_TEST123', amount=49900):
    response = mock.Mock(status_code=200)
    response.json.return_value = {'id': order_id, 'amount': amount, 'currency': 'INR', 'status': 'created'}
    return response


@override_settings(
    MEDIA_ROOT=MEDIA_ROOT,
    RAZORPAY_KEY_ID='rzp_test_key',
    RAZORPAY_KEY_SECRET=KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET=WEBHOOK_SECRET,
)
class PaymentFlowTestCase(TestCase):
    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        self.client = APIClient()
        self.student = CustomUser.objects.create_user(email='student@test.com', password='student123', name='Ada')
        self.admin_user = CustomUser.objects.create_superuser(email='admin@test.com', password='admin123')
        self.internship = Internship.objects.create(title='Cloud Internship', certificate_price=Decimal('499.00'))
        self.enrollment = Enrollment.objects.create(
            student=self.student,
            internship=self.internship,
            is_completed=True,
            completion_date=timezone.now(),
            final_score=88.5,
            certificate_eligible=True,
        )
        self.client.force_authenticate(user=self.student)

    def create_order(self):
        with mock.patch('payments.gateway.requests.post', return_value=order_response()) as post:
            response = self.client.post(
                '/api/payments/create-order/', {'enrollment_id': self.enrollment.id}, format='json'
            )
        return response, post

    def test_payment_section_requires_completion(self):
        self.enrollment.is_completed = False
        self.enrollment.save()
        response = self.client.get(f'/api/payments/payment-section/{self.enrollment.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Complete all tasks to access payment section")

    def test_payment_section_requires_eligibility(self):
        self.enrollment.certificate_eligible = False
        self.enrollment.save()
        response = self.client.get(f'/api/payments/payment-section/{self.enrollment.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payment_section_for_other_student(self):
        other = CustomUser.objects.create_user(email='other@test.com', password='other123')
        self.client.force_authenticate(user=other)
        response = self.client.get(f'/api/payments/payment-section/{self.enrollment.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_payment_section_creates_pending_payment(self):
        response = self.client.get(f'/api/payments/payment-section/{self.enrollment.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['already_paid'])
        self.assertTrue(response.data['upi']['upi_link'].startswith('upi://pay?'))
        payment = Payment.objects.get(enrollment=self.enrollment)
        self.assertEqual(payment.status, Payment.STATUS_PENDING)
        self.assertEqual(payment.amount, Decimal('499.00'))

        # Opening the section again reuses the same payment
        self.client.get(f'/api/payments/payment-section/{self.enrollment.id}/')
        self.assertEqual(Payment.objects.filter(enrollment=self.enrollment).count(), 1)

    def test_create_order(self):
        response, post = self.create_order()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_id'], 'order_TEST123')
        self.assertEqual(response.data['key_id'], 'rzp_test_key')
        self.assertEqual(post.call_args.kwargs['json']['amount'], 49900)

        payment = Payment.objects.get(pk=response.data['payment_id'])
        self.assertEqual(payment.razorpay_order_id, 'order_TEST123')
        self.assertEqual(payment.method, Payment.METHOD_RAZORPAY)

    def test_create_order_gateway_failure(self):
        with mock.patch('payments.gateway.requests.post', side_effect=requests.ConnectionError('down')):
            response = self.client.post(
                '/api/payments/create-order/', {'enrollment_id': self.enrollment.id}, format='json'
            )
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(Payment.objects.get(enrollment=self.enrollment).status, Payment.STATUS_FAILED)

    def test_verify_payment_issues_certificate_and_receipt(self):
        self.create_order()
        response = self.client.post('/api/payments/verify/', {
            'razorpay_order_id': 'order_TEST123',
            'razorpay_payment_id': 'pay_TEST456',
            'razorpay_signature': signature_for(KEY_SECRET, 'order_TEST123|pay_TEST456'),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['certificate']['certificate_number'].startswith('CERT-'))

        payment = Payment.objects.get(razorpay_order_id='order_TEST123')
        self.assertEqual(payment.status, Payment.STATUS_VERIFIED)
        self.assertEqual(payment.razorpay_payment_id, 'pay_TEST456')
        self.assertTrue(PaymentReceipt.objects.filter(payment=payment).exists())
        self.enrollment.refresh_from_db()
        self.assertTrue(self.enrollment.certificate_purchased)
        self.assertEqual(Certificate.objects.filter(enrollment=self.enrollment).count(), 1)

        receipt = self.client.get(f'/api/payments/receipt/{payment.id}/')
        self.assertEqual(receipt.status_code, status.HTTP_200_OK)
        self.assertIn('attachment', receipt['Content-Disposition'])
        receipt.close()

        # A repeated verification is harmless
        response = self.client.post('/api/payments/verify/', {
            'razorpay_order_id': 'order_TEST123',
            'razorpay_payment_id': 'pay_TEST456',
            'razorpay_signature': 'whatever',
        }, format='json')
        self.assertEqual(response.data['message'], "Payment already verified")
        self.assertEqual(Certificate.objects.filter(enrollment=self.enrollment).count(), 1)

    def test_reopened_checkout_pays_first_order(self):
        self.create_order()
        with mock.patch(
            'payments.gateway.requests.post', return_value=order_response(order_id='order_SECOND')
        ) as post:
            response = self.client.post(
                '/api/payments/create-order/', {'enrollment_id': self.enrollment.id}, format='json'
            )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_id'], 'order_TEST123')
        self.assertEqual(response.data['amount'], 49900)
        post.assert_not_called()

        response = self.client.post('/api/payments/verify/', {
            'razorpay_order_id': 'order_TEST123',
            'razorpay_payment_id': 'pay_TEST456',
            'razorpay_signature': signature_for(KEY_SECRET, 'order_TEST123|pay_TEST456'),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Payment.objects.get(enrollment=self.enrollment).status, Payment.STATUS_VERIFIED)

    def test_verify_payment_with_bad_signature(self):
        self.create_order()
        response = self.client.post('/api/payments/verify/', {
            'razorpay_order_id': 'order_TEST123',
            'razorpay_payment_id': 'pay_TEST456',
            'razorpay_signature': 'forged',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Payment.objects.get(razorpay_order_id='order_TEST123').status, Payment.STATUS_PENDING)
        self.assertFalse(Certificate.objects.exists())

    def test_create_order_after_purchase_rejected(self):
        self.create_order()
        self.client.post('/api/payments/verify/', {
            'razorpay_order_id': 'order_TEST123',
            'razorpay_payment_id': 'pay_TEST456',
            'razorpay_signature': signature_for(KEY_SECRET, 'order_TEST123|pay_TEST456'),
        }, format='json')
        response, _ = self.create_order()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Certificate already purchased")

    def test_webhook_captures_payment(self):
        self.create_order()
        body = json.dumps({
            'event': 'payment.captured',
            'payload': {'payment': {'entity': {'id': 'pay_HOOK1', 'order_id': 'order_TEST123'}}},
        }).encode()
        response = self.client.generic(
            'POST', '/api/payments/webhook/', body, content_type='application/json',
            HTTP_X_RAZORPAY_SIGNATURE=signature_for(WEBHOOK_SECRET, body),
        )
        self.assertEqual(response.status_code, 200)
        payment = Payment.objects.get(razorpay_order_id='order_TEST123')
        self.assertEqual(payment.status, Payment.STATUS_VERIFIED)
        self.assertEqual(payment.razorpay_payment_id, 'pay_HOOK1')
        self.assertTrue(Certificate.objects.filter(enrollment=self.enrollment).exists())

    def test_webhook_rejects_bad_signature(self):
        body = json.dumps({'event': 'payment.captured', 'payload': {}}).encode()
        response = self.client.generic(
            'POST', '/api/payments/webhook/', body, content_type='application/json',
            HTTP_X_RAZORPAY_SIGNATURE='forged',
        )
        self.assertEqual(response.status_code, 400)

    def test_webhook_marks_failed_payment(self):
        self.create_order()
        body = json.dumps({
            'event': 'payment.failed',
            'payload': {'payment': {'entity': {'order_id': 'order_TEST123', 'error_description': 'Card declined'}}},
        }).encode()
        self.client.generic(
            'POST', '/api/payments/webhook/', body, content_type='application/json',
            HTTP_X_RAZORPAY_SIGNATURE=signature_for(WEBHOOK_SECRET, body),
        )
        payment = Payment.objects.get(razorpay_order_id='order_TEST123')
        self.assertEqual(payment.status, Payment.STATUS_FAILED)
        self.assertEqual(payment.remarks, 'Card declined')

    def test_manual_upi_proof_verified_by_admin(self):
        section = self.client.get(f'/api/payments/payment-section/{self.enrollment.id}/')
        payment_id = section.data['payment']['id']
        proof = SimpleUploadedFile('proof.png', b'fake-image-bytes', content_type='image/png')
        response = self.client.post(
            f'/api/payments/submit-proof/{payment_id}/',
            {'transaction_id': 'UPI-998877', 'payment_proof': proof},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(Notification.objects.filter(created_for=None, title="Payment Proof Submitted").exists())

        self.client.force_authenticate(user=self.admin_user)
        response = self.client.get('/api/payments/admin/payments/', {'method': 'upi'})
        self.assertEqual(response.data['count'], 1)

        response = self.client.put(
            f'/api/payments/admin/payments/{payment_id}/verify/',
            {'status': 'VERIFIED', 'review_message': 'Matched bank statement'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        payment = Payment.objects.get(pk=payment_id)
        self.assertEqual(payment.status, Payment.STATUS_VERIFIED)
        self.assertEqual(payment.verified_by, self.admin_user)
        self.assertEqual(Certificate.objects.get(enrollment=self.enrollment).issued_by, self.admin_user)

        response = self.client.put(
            f'/api/payments/admin/payments/{payment_id}/verify/', {'status': 'REJECTED'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/payments/admin/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], 499.0)

    def test_admin_rejects_payment(self):
        section = self.client.get(f'/api/payments/payment-section/{self.enrollment.id}/')
        payment_id = section.data['payment']['id']
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.put(
            f'/api/payments/admin/payments/{payment_id}/verify/',
            {'status': 'REJECTED', 'review_message': 'Transaction not found'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Payment.objects.get(pk=payment_id).status, Payment.STATUS_REJECTED)
        self.assertFalse(Certificate.objects.exists())

    def test_student_cannot_use_admin_endpoints(self):
        response = self.client.get('/api/payments/admin/payments/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


@override_settings(UPI_ID='lms@okbank', UPI_PAYEE_NAME='Student LMS')
class GatewayHelpersTestCase(TestCase):
    def test_upi_link(self):
        link = gateway.build_upi_link(Decimal('499'), 'Certificate fee')
        self.assertEqual(link, 'upi://pay?pa=lms%40okbank&pn=Student%20LMS&am=499.00&cu=INR&tn=Certificate%20fee')

    @override_settings(RAZORPAY_WEBHOOK_SECRET='')
    def test_webhook_signature_needs_secret(self):
        self.assertFalse(gateway.verify_webhook_signature(b'{}', 'anything'))

    @override_settings(RAZORPAY_KEY_SECRET=KEY_SECRET)
    def test_payment_signature(self):
        good = signature_for(KEY_SECRET, 'order_1|pay_1')
        self.assertTrue(gateway.verify_payment_signature('order_1', 'pay_1', good))
        self.assertFalse(gateway.verify_payment_signature('order_1', 'pay_2', good))

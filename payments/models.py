from django.db import models
from django.conf import settings
from django.utils import timezone


def payment_proof_path(instance, filename):
    return f"payment_proofs/{instance.student_id}/{filename}"


class Payment(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_VERIFIED = 'VERIFIED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_FAILED = 'FAILED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_VERIFIED, 'Verified'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_FAILED, 'Failed'),
    ]

    METHOD_RAZORPAY = 'RAZORPAY'
    METHOD_UPI = 'UPI'
    METHOD_CHOICES = [
        (METHOD_RAZORPAY, 'Razorpay'),
        (METHOD_UPI, 'UPI (manual)'),
    ]

    TYPE_CERTIFICATE = 'CERTIFICATE'
    PAYMENT_TYPE_CHOICES = [
        (TYPE_CERTIFICATE, 'Certificate'),
    ]

    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='payments')
    enrollment = models.ForeignKey('internships.Enrollment', on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='INR')
    payment_type = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES, default=TYPE_CERTIFICATE)
    method = models.CharField(max_length=10, choices=METHOD_CHOICES, default=METHOD_RAZORPAY)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    # Razorpay
    razorpay_order_id = models.CharField(max_length=100, blank=True, default='', db_index=True)
    razorpay_payment_id = models.CharField(max_length=100, blank=True, default='')
    razorpay_signature = models.CharField(max_length=255, blank=True, default='')

    # Manual UPI
    transaction_id = models.CharField(max_length=100, blank=True, default='')
    upi_id = models.CharField(max_length=100, blank=True, default='')
    payment_proof = models.FileField(upload_to=payment_proof_path, blank=True, null=True)
    remarks = models.TextField(blank=True, default='')

    verification_message = models.TextField(blank=True, default='')
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='verified_payments'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['student', 'status']),
        ]

    def __str__(self):
        return f"{self.student.email} - ₹{self.amount} - {self.status}"

    @property
    def amount_in_paise(self):
        return int(self.amount * 100)


class PaymentReceipt(models.Model):
    payment = models.OneToOneField(Payment, on_delete=models.CASCADE, related_name='receipt')
    receipt_number = models.CharField(max_length=50, unique=True)
    pdf_file = models.FileField(upload_to='receipts/', blank=True, null=True)
    generated_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"Receipt {self.receipt_number}"

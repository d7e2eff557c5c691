import logging

from django.db import transaction
from django.utils import timezone

from admin_panel.utils import create_notification, notify_admins
from certificates.utils import issue_certificate
from .models import Payment
from .utils_receipt import generate_receipt_pdf

logger = logging.getLogger(__name__)


def get_or_create_certificate_payment(enrollment):
    """The open certificate payment for an enrollment, creating one when none exists"""
    payment = enrollment.payments.filter(
        payment_type=Payment.TYPE_CERTIFICATE,
        status__in=[Payment.STATUS_VERIFIED, Payment.STATUS_PENDING],
    ).order_by('-created_at').first()
    if payment is not None:
        return payment, False

    payment = Payment.objects.create(
        student=enrollment.student,
        enrollment=enrollment,
        amount=enrollment.internship.certificate_price,
        payment_type=Payment.TYPE_CERTIFICATE,
    )
    return payment, True


def finalize_payment(payment, verified_by=None, message=''):
    """
    Mark a payment verified and deliver what it paid for.
    Shared by checkout verification, the webhook and manual review.
    Calling it again for a verified payment is a no-op.
    """
    with transaction.atomic():
        payment = Payment.objects.select_for_update().select_related(
            'student', 'enrollment__internship'
        ).get(pk=payment.pk)
        if payment.status == Payment.STATUS_VERIFIED:
            return payment, False

        payment.status = Payment.STATUS_VERIFIED
        payment.verified_by = verified_by
        payment.verified_at = timezone.now()
        if message:
            payment.verification_message = message
        payment.save()

        enrollment = payment.enrollment
        enrollment.certificate_purchased = True
        enrollment.save(update_fields=['certificate_purchased'])

    generate_receipt_pdf(payment)

    certificate = None
    try:
        certificate = issue_certificate(enrollment, issued_by=verified_by)
    except ValueError as e:
        logger.error(f"Certificate not issued for payment {payment.id}: {e}")
        notify_admins(
            title="Certificate Issue Failed",
            message=f"Payment {payment.id} was verified but the certificate could not be issued: {e}",
            priority='HIGH',
            notification_type='ERROR',
        )

    create_notification(
        title="Payment Verified",
        message=(
            f"Your payment of ₹{payment.amount} for {enrollment.internship.title} has been verified."
            + (f" Certificate {certificate.certificate_number} is ready to download." if certificate else "")
        ),
        notification_type='SUCCESS',
        priority='HIGH',
        user=payment.student,
        link='/certificates',
    )
    logger.info(f"Payment {payment.id} verified for {payment.student.email}")
    return payment, True


def reject_payment(payment, verified_by, message=''):
    payment.status = Payment.STATUS_REJECTED
    payment.verified_by = verified_by
    payment.verified_at = timezone.now()
    payment.verification_message = message
    payment.save()

    create_notification(
        title="Payment Rejected",
        message=f"Your payment for {payment.enrollment.internship.title} was rejected. {message}".strip(),
        notification_type='ERROR',
        priority='HIGH',
        user=payment.student,
        link='/payments',
    )
    return payment

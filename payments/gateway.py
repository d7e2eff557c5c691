"""
Razorpay integration.

Orders are created through the Razorpay REST API; checkout results and
webhook deliveries are authenticated with HMAC-SHA256 signatures.
"""
import hashlib
import hmac
import logging
from urllib.parse import urlencode, quote

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15


class GatewayError(Exception):
    """Razorpay rejected the request or could not be reached."""


def _sign(secret, message):
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def create_order(payment):
    """Create a Razorpay order for a pending payment and return the order payload"""
    payload = {
        'amount': payment.amount_in_paise,
        'currency': payment.currency,
        'receipt': f"enrollment_{payment.enrollment_id}_payment_{payment.id}",
        'notes': {
            'payment_id': str(payment.id),
            'student_email': payment.student.email,
            'internship': payment.enrollment.internship.title,
        },
    }
    try:
        res = requests.post(
            f"{settings.RAZORPAY_BASE_URL}/orders",
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
            json=payload,
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error(f"Razorpay order request failed for payment {payment.id}: {e}")
        raise GatewayError("Payment gateway unreachable") from e

    if res.status_code not in (200, 201):
        logger.error(f"Razorpay order creation failed for payment {payment.id}: {res.status_code} {res.text}")
        raise GatewayError("Failed to create payment order")

    order = res.json()
    logger.info(f"Razorpay order {order.get('id')} created for payment {payment.id}")
    return order


def verify_payment_signature(order_id, payment_id, signature):
    if not signature:
        return False
    expected = _sign(settings.RAZORPAY_KEY_SECRET, f"{order_id}|{payment_id}")
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body, signature):
    secret = settings.RAZORPAY_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    return hmac.compare_digest(_sign(secret, body), signature)


def build_upi_link(amount, note):
    """UPI deep link for manual payments"""
    params = {
        'pa': settings.UPI_ID,
        'pn': settings.UPI_PAYEE_NAME,
        'am': f"{amount:.2f}",
        'cu': 'INR',
        'tn': note,
    }
    return 'upi://pay?' + urlencode(params, quote_via=quote)

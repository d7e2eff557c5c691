import json
import logging

from django.conf import settings
from django.db.models import Sum, Count, Q
from django.db.models.functions import TruncMonth
from django.http import FileResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from admin_panel.pagination import StandardResultsSetPagination
from admin_panel.permissions import IsStaffOrSuperAdmin
from admin_panel.utils import log_admin_activity, get_client_ip, notify_admins
from certificates.serializers import CertificateSerializer
from internships.models import Enrollment
from . import gateway
from .models import Payment, PaymentReceipt
from .serializers import (
    PaymentSerializer, CreateOrderSerializer, VerifyPaymentSerializer,
    PaymentProofSerializer, AdminVerifyPaymentSerializer,
)
from .services import get_or_create_certificate_payment, finalize_payment, reject_payment
from .utils_receipt import generate_receipt_pdf

logger = logging.getLogger(__name__)


def _is_staff(request):
    return IsStaffOrSuperAdmin().has_permission(request, None)


def _payable_enrollment(request, enrollment_id):
    """
    The caller's enrollment if it may pay for a certificate,
    otherwise an error Response.
    """
    enrollment = Enrollment.objects.select_related('internship', 'student').filter(
        pk=enrollment_id, student=request.user
    ).first()
    if enrollment is None:
        return None, Response({"error": "Enrollment not found"}, status=status.HTTP_404_NOT_FOUND)
    if not enrollment.is_completed:
        return None, Response(
            {"error": "Complete all tasks to access payment section"}, status=status.HTTP_400_BAD_REQUEST
        )
    if not enrollment.certificate_eligible:
        return None, Response(
            {
                "error": "Your final score is below the pass percentage required for a certificate",
                "final_score": enrollment.final_score,
                "pass_percentage": enrollment.internship.pass_percentage,
            },
            status=status.HTTP_400_BAD_REQUEST
        )
    return enrollment, None


def _certificate_data(payment, request):
    certificate = getattr(payment.enrollment, 'certificate', None)
    return CertificateSerializer(certificate, context={'request': request}).data if certificate else None


# ==========================================================
# STUDENT PAYMENT FLOW
# ==========================================================
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_section(request, enrollment_id):
    enrollment, error = _payable_enrollment(request, enrollment_id)
    if error:
        return error

    payment, _ = get_or_create_certificate_payment(enrollment)
    return Response({
        "enrollment_id": enrollment.id,
        "internship": {"id": enrollment.internship.id, "title": enrollment.internship.title},
        "final_score": enrollment.final_score,
        "certificate_price": enrollment.internship.certificate_price,
        "currency": payment.currency,
        "payment": PaymentSerializer(payment).data,
        "already_paid": payment.status == Payment.STATUS_VERIFIED,
        "razorpay_key_id": settings.RAZORPAY_KEY_ID,
        "upi": {
            "upi_id": settings.UPI_ID,
            "payee_name": settings.UPI_PAYEE_NAME,
            "upi_link": gateway.build_upi_link(
                payment.amount, f"Certificate {enrollment.internship.title}"
            ),
        },
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def create_order(request):
    serializer = CreateOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    enrollment, error = _payable_enrollment(request, serializer.validated_data['enrollment_id'])
    if error:
        return error

    payment, _ = get_or_create_certificate_payment(enrollment)
    if payment.status == Payment.STATUS_VERIFIED:
        return Response({"error": "Certificate already purchased"}, status=status.HTTP_400_BAD_REQUEST)

    if payment.razorpay_order_id:
        # Reopened checkout pays the same order, so verify and the webhook can still find it
        order = {'id': payment.razorpay_order_id}
    else:
        try:
            order = gateway.create_order(payment)
        except gateway.GatewayError as e:
            payment.status = Payment.STATUS_FAILED
            payment.remarks = str(e)
            payment.save(update_fields=['status', 'remarks', 'updated_at'])
            return Response({"error": str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    payment.method = Payment.METHOD_RAZORPAY
    payment.razorpay_order_id = order['id']
    payment.save(update_fields=['method', 'razorpay_order_id', 'updated_at'])

    return Response({
        "payment_id": payment.id,
        "order_id": order['id'],
        "amount": order.get('amount', payment.amount_in_paise),
        "currency": order.get('currency', payment.currency),
        "key_id": settings.RAZORPAY_KEY_ID,
        "name": settings.ORGANIZATION_NAME,
        "description": f"Certificate for {enrollment.internship.title}",
        "prefill": {
            "name": request.user.name,
            "email": request.user.email,
            "contact": request.user.phone_number or '',
        },
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def verify_payment(request):
    serializer = VerifyPaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payment = Payment.objects.select_related('enrollment__internship').filter(
        razorpay_order_id=data['razorpay_order_id'], student=request.user
    ).first()
    if payment is None:
        return Response({"error": "Payment not found"}, status=status.HTTP_404_NOT_FOUND)

    if payment.status == Payment.STATUS_VERIFIED:
        return Response({
            "message": "Payment already verified",
            "payment": PaymentSerializer(payment).data,
            "certificate": _certificate_data(payment, request),
        })

    if not gateway.verify_payment_signature(
        data['razorpay_order_id'], data['razorpay_payment_id'], data['razorpay_signature']
    ):
        logger.warning(f"Invalid signature for order {data['razorpay_order_id']}")
        return Response(
            {"error": "Payment verification failed. Invalid signature."}, status=status.HTTP_400_BAD_REQUEST
        )

    payment.razorpay_payment_id = data['razorpay_payment_id']
    payment.razorpay_signature = data['razorpay_signature']
    payment.save(update_fields=['razorpay_payment_id', 'razorpay_signature', 'updated_at'])

    payment, _ = finalize_payment(payment, message="Verified by Razorpay signature")
    return Response({
        "message": "Payment verified successfully",
        "payment": PaymentSerializer(payment).data,
        "certificate": _certificate_data(payment, request),
    })


def _handle_payment_captured(entity):
    order_id = entity.get('order_id')
    if not order_id:
        logger.warning("Webhook payment event without order_id")
        return
    payment = Payment.objects.filter(razorpay_order_id=order_id).first()
    if payment is None:
        logger.warning(f"Webhook: no payment for order {order_id}")
        return
    if payment.status == Payment.STATUS_VERIFIED:
        logger.info(f"Webhook: order {order_id} already processed")
        return

    if entity.get('id'):
        payment.razorpay_payment_id = entity['id']
        payment.save(update_fields=['razorpay_payment_id', 'updated_at'])
    finalize_payment(payment, message="Verified by Razorpay webhook")


def _handle_payment_failed(entity):
    order_id = entity.get('order_id')
    if not order_id:
        return
    updated = Payment.objects.filter(razorpay_order_id=order_id, status=Payment.STATUS_PENDING).update(
        status=Payment.STATUS_FAILED,
        remarks=entity.get('error_description') or 'Payment failed',
    )
    logger.info(f"Webhook: marked {updated} payment(s) for order {order_id} as failed")


@csrf_exempt
@require_POST
def razorpay_webhook(request):
    signature = request.headers.get('X-Razorpay-Signature', '')
    if not gateway.verify_webhook_signature(request.body, signature):
        logger.warning("Webhook rejected: invalid signature")
        return JsonResponse({"error": "Invalid webhook signature"}, status=400)

    try:
        payload = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    event = payload.get("event")
    logger.info(f"Webhook received event: {event}")
    body = payload.get("payload", {})

    if event == "payment.captured":
        _handle_payment_captured(body.get("payment", {}).get("entity", {}))
    elif event == "payment.failed":
        _handle_payment_failed(body.get("payment", {}).get("entity", {}))
    elif event == "order.paid":
        order = body.get("order", {}).get("entity", {})
        payment_entity = body.get("payment", {}).get("entity", {})
        _handle_payment_captured({"order_id": order.get("id"), "id": payment_entity.get("id")})
    else:
        return JsonResponse({"status": "ignored"}, status=200)

    return JsonResponse({"status": "ok"}, status=200)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submit_payment_proof(request, payment_id):
    payment = Payment.objects.select_related('enrollment__internship').filter(
        pk=payment_id, student=request.user
    ).first()
    if payment is None:
        return Response({"error": "Payment not found"}, status=status.HTTP_404_NOT_FOUND)
    if payment.status == Payment.STATUS_VERIFIED:
        return Response({"error": "Payment already verified"}, status=status.HTTP_400_BAD_REQUEST)

    serializer = PaymentProofSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payment.method = Payment.METHOD_UPI
    payment.status = Payment.STATUS_PENDING
    payment.transaction_id = data['transaction_id']
    payment.upi_id = data['upi_id']
    payment.remarks = data['remarks']
    payment.payment_proof = data['payment_proof']
    payment.verification_message = ''
    payment.save()

    notify_admins(
        title="Payment Proof Submitted",
        message=(
            f"{request.user.email} submitted UPI proof (txn {payment.transaction_id}) "
            f"for {payment.enrollment.internship.title}"
        ),
        priority='HIGH',
        link=f"/admin/payments/{payment.id}",
    )
    return Response({
        "message": "Payment proof submitted. It will be verified by an administrator.",
        "payment": PaymentSerializer(payment).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_history(request):
    payments = Payment.objects.filter(student=request.user).select_related(
        'enrollment__internship', 'receipt', 'verified_by'
    )
    return Response(PaymentSerializer(payments, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def download_receipt(request, payment_id):
    payment = get_object_or_404(Payment.objects.select_related('student', 'enrollment__internship'), pk=payment_id)
    if payment.student_id != request.user.id and not _is_staff(request):
        return Response({"error": "You do not have access to this receipt"}, status=status.HTTP_403_FORBIDDEN)
    if payment.status != Payment.STATUS_VERIFIED:
        return Response({"error": "Receipt is available only for verified payments"}, status=status.HTTP_400_BAD_REQUEST)

    receipt = PaymentReceipt.objects.filter(payment=payment).first()
    if receipt is None or not receipt.pdf_file:
        generate_receipt_pdf(payment)
        receipt = PaymentReceipt.objects.get(payment=payment)

    try:
        handle = receipt.pdf_file.open('rb')
    except FileNotFoundError:
        generate_receipt_pdf(payment)
        handle = receipt.pdf_file.open('rb')

    return FileResponse(
        handle,
        as_attachment=True,
        filename=f"{receipt.receipt_number}.pdf"
    )


# ==========================================================
# ADMIN
# ==========================================================
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def admin_payments(request):
    queryset = Payment.objects.select_related('student', 'enrollment__internship', 'verified_by', 'receipt')

    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter.upper())
    method = request.query_params.get('method')
    if method:
        queryset = queryset.filter(method=method.upper())
    search = request.query_params.get('search')
    if search:
        queryset = queryset.filter(
            Q(student__email__icontains=search) | Q(student__name__icontains=search) |
            Q(transaction_id__icontains=search) | Q(razorpay_order_id__icontains=search)
        )

    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(queryset, request)
    return paginator.get_paginated_response(PaymentSerializer(page, many=True).data)


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def admin_verify_payment(request, payment_id):
    payment = get_object_or_404(Payment.objects.select_related('student', 'enrollment__internship'), pk=payment_id)
    if payment.status == Payment.STATUS_VERIFIED:
        return Response({"error": "Payment already verified"}, status=status.HTTP_400_BAD_REQUEST)

    serializer = AdminVerifyPaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if data['status'] == Payment.STATUS_VERIFIED:
        enrollment = payment.enrollment
        if not (enrollment.is_completed and enrollment.certificate_eligible):
            return Response(
                {"error": "Enrollment is not eligible for a certificate"}, status=status.HTTP_400_BAD_REQUEST
            )
        payment, _ = finalize_payment(payment, verified_by=request.user, message=data['review_message'])
        action = 'APPROVE'
    else:
        payment = reject_payment(payment, request.user, data['review_message'])
        action = 'REJECT'

    log_admin_activity(
        admin=request.user,
        action=action,
        model_name='Payment',
        object_id=payment.id,
        description=f"{payment.get_status_display()} payment of ₹{payment.amount} from {payment.student.email}",
        ip_address=get_client_ip(request)
    )
    return Response({
        "message": f"Payment {payment.status.lower()} successfully",
        "payment": PaymentSerializer(payment).data,
        "certificate": _certificate_data(payment, request),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def payment_statistics(request):
    """Payment statistics for the admin dashboard"""
    queryset = Payment.objects.all()
    from_date = request.query_params.get('from_date')
    to_date = request.query_params.get('to_date')
    if from_date:
        queryset = queryset.filter(created_at__date__gte=from_date)
    if to_date:
        queryset = queryset.filter(created_at__date__lte=to_date)

    totals = queryset.aggregate(
        total_payments=Count('id'),
        verified_payments=Count('id', filter=Q(status=Payment.STATUS_VERIFIED)),
        pending_payments=Count('id', filter=Q(status=Payment.STATUS_PENDING)),
        rejected_payments=Count('id', filter=Q(status=Payment.STATUS_REJECTED)),
        failed_payments=Count('id', filter=Q(status=Payment.STATUS_FAILED)),
        awaiting_manual_review=Count(
            'id', filter=Q(status=Payment.STATUS_PENDING, method=Payment.METHOD_UPI) & ~Q(transaction_id='')
        ),
        total_revenue=Sum('amount', filter=Q(status=Payment.STATUS_VERIFIED)),
    )
    totals['total_revenue'] = float(totals['total_revenue'] or 0)

    totals['by_method'] = {
        row['method']: {'count': row['count'], 'total': float(row['total'] or 0)}
        for row in queryset.filter(status=Payment.STATUS_VERIFIED)
        .values('method').annotate(count=Count('id'), total=Sum('amount'))
    }
    totals['monthly_revenue'] = [
        {'month': row['month'].strftime('%Y-%m'), 'total': float(row['total'] or 0), 'count': row['count']}
        for row in queryset.filter(status=Payment.STATUS_VERIFIED)
        .annotate(month=TruncMonth('verified_at'))
        .values('month').annotate(total=Sum('amount'), count=Count('id'))
        .order_by('month')
        if row['month']
    ]
    return Response(totals)

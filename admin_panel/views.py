import csv
import logging
from datetime import timedelta

from django.db.models import Count, Sum, Q, Avg
from django.db.models.functions import TruncMonth
from django.http import HttpResponse
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, viewsets, status, filters
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from certificates.models import Certificate
from internships.models import Internship, Enrollment
from payments.models import Payment
from students.models import CustomUser
from students.serializers import AdminUserSerializer
from tasks.models import Submission
from .filters import StudentFilter, AdminActivityFilter
from .models import AdminActivity, Notification
from .pagination import StandardResultsSetPagination
from .permissions import IsSuperAdmin, IsStaffOrSuperAdmin
from .serializers import (
    AdminActivitySerializer, NotificationSerializer,
    DashboardStatsSerializer, StudentStatsSerializer,
    RevenueAnalyticsSerializer, InternshipStatsSerializer,
)
from .utils import log_admin_activity, get_client_ip

logger = logging.getLogger(__name__)


class DashboardViewSet(viewsets.ViewSet):
    """Dashboard statistics and analytics"""
    permission_classes = [IsAuthenticated, IsStaffOrSuperAdmin]

    @action(detail=False, methods=['get'])
    def stats(self, request):
        """Get overall dashboard statistics"""
        try:
            students = CustomUser.objects.students()
            total_students = students.count()
            active_students = students.filter(is_active=True).count()

            internships = Internship.objects.all()
            enrollments = Enrollment.objects.all()
            certificates = Certificate.objects.all()
            verified_payments = Payment.objects.filter(status=Payment.STATUS_VERIFIED)

            current_month = timezone.now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

            stats_data = {
                'total_students': total_students,
                'active_students': active_students,
                'inactive_students': total_students - active_students,
                'total_internships': internships.count(),
                'active_internships': internships.filter(is_active=True).count(),
                'total_enrollments': enrollments.count(),
                'completed_enrollments': enrollments.filter(is_completed=True).count(),
                'pending_reviews': Submission.objects.filter(status__in=Submission.REVIEWABLE_STATUSES).count(),
                'total_certificates': certificates.count(),
                'revoked_certificates': certificates.filter(is_revoked=True).count(),
                'total_revenue': verified_payments.aggregate(total=Sum('amount'))['total'] or 0,
                'pending_payments': Payment.objects.filter(status=Payment.STATUS_PENDING).count(),
                'new_students_this_month': students.filter(registration_date__gte=current_month).count(),
                'certificates_this_month': certificates.filter(issued_at__gte=current_month).count(),
            }

            serializer = DashboardStatsSerializer(stats_data)
            return Response(serializer.data)

        except Exception as e:
            logger.error(f"Dashboard stats error: {str(e)}")
            return Response(
                {'error': str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

    @action(detail=False, methods=['get'])
    def recent_students(self, request):
        """Get recently registered students"""
        try:
            limit = max(1, int(request.query_params.get('limit', 10)))
        except ValueError:
            return Response({'error': 'limit must be a number'}, status=status.HTTP_400_BAD_REQUEST)

        students = CustomUser.objects.students().order_by('-registration_date')[:limit]
        return Response(StudentStatsSerializer(students, many=True).data)

    @action(detail=False, methods=['get'])
    def revenue_analytics(self, request):
        """Verified certificate revenue grouped by month"""
        try:
            months = int(request.query_params.get('months', 6))
        except ValueError:
            return Response({'error': 'months must be a number'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            start_date = timezone.now() - timedelta(days=30 * months)

            revenue = {
                row['month'].strftime('%b %Y'): row
                for row in Payment.objects.filter(
                    status=Payment.STATUS_VERIFIED, verified_at__gte=start_date
                ).annotate(month=TruncMonth('verified_at'))
                .values('month').annotate(total=Sum('amount'), count=Count('id'))
                if row['month']
            }
            enrollments = {
                row['month'].strftime('%b %Y'): row['count']
                for row in Enrollment.objects.filter(enrolled_at__gte=start_date)
                .annotate(month=TruncMonth('enrolled_at'))
                .values('month').annotate(count=Count('id'))
                if row['month']
            }

            monthly_data = []
            cursor = timezone.localtime(start_date).replace(day=1)
            now = timezone.localtime()
            while (cursor.year, cursor.month) <= (now.year, now.month):
                label = cursor.strftime('%b %Y')
                row = revenue.get(label, {})
                monthly_data.append({
                    'month': label,
                    'total_revenue': row.get('total') or 0,
                    'payment_count': row.get('count', 0),
                    'new_enrollments': enrollments.get(label, 0),
                })
                cursor = (cursor + timedelta(days=32)).replace(day=1)

            serializer = RevenueAnalyticsSerializer(monthly_data, many=True)
            return Response(serializer.data)

        except Exception as e:
            logger.error(f"Revenue analytics error: {str(e)}")
            return Response(
                {'error': str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

    @action(detail=False, methods=['get'])
    def internship_stats(self, request):
        """Get statistics for each internship"""
        try:
            internship_data = []
            for internship in Internship.objects.order_by('title'):
                enrollments = Enrollment.objects.filter(internship=internship).aggregate(
                    enrollment_count=Count('id'),
                    completed_count=Count('id', filter=Q(is_completed=True)),
                    eligible_count=Count('id', filter=Q(certificate_eligible=True)),
                    average_score=Avg('final_score', filter=Q(is_completed=True)),
                )
                internship_data.append({
                    'internship_id': internship.id,
                    'title': internship.title,
                    'is_active': internship.is_active,
                    'total_tasks': internship.total_tasks,
                    'enrollment_count': enrollments['enrollment_count'],
                    'completed_count': enrollments['completed_count'],
                    'eligible_count': enrollments['eligible_count'],
                    'certificate_count': Certificate.objects.filter(internship=internship, is_revoked=False).count(),
                    'average_score': round(enrollments['average_score'] or 0, 2),
                    'total_revenue': Payment.objects.filter(
                        enrollment__internship=internship, status=Payment.STATUS_VERIFIED
                    ).aggregate(total=Sum('amount'))['total'] or 0,
                })

            serializer = InternshipStatsSerializer(internship_data, many=True)
            return Response(serializer.data)

        except Exception as e:
            logger.error(f"Internship stats error: {str(e)}")
            return Response(
                {'error': str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )


class AdminActivityViewSet(viewsets.ReadOnlyModelViewSet):
    """View admin activity logs"""
    serializer_class = AdminActivitySerializer
    permission_classes = [IsAuthenticated, IsSuperAdmin]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_class = AdminActivityFilter
    search_fields = ['description', 'admin__email']

    def get_queryset(self):
        return AdminActivity.objects.select_related('admin')


class NotificationViewSet(mixins.DestroyModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    Notification feed.
    Everyone sees their own notifications; staff also see broadcasts.
    Only personal notifications can be deleted.
    """
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = Notification.objects.filter(created_for=user)
        if self.action != 'destroy' and IsStaffOrSuperAdmin().has_permission(self.request, self):
            queryset = Notification.objects.filter(Q(created_for=user) | Q(created_for__isnull=True))

        is_read = self.request.query_params.get('is_read')
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read.lower() in ['true', '1'])
        return queryset

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):
        """Mark notification as read"""
        notification = self.get_object()
        notification.is_read = True
        notification.save(update_fields=['is_read'])
        return Response({'message': 'Notification marked as read'})

    @action(detail=False, methods=['post'])
    def mark_all_read(self, request):
        """Mark all notifications as read"""
        updated = self.get_queryset().filter(is_read=False).update(is_read=True)
        return Response({'message': 'All notifications marked as read', 'updated': updated})

    @action(detail=False, methods=['get'])
    def unread_count(self, request):
        """Get count of unread notifications"""
        count = self.get_queryset().filter(is_read=False).count()
        return Response({'count': count})


class StudentManagementViewSet(viewsets.ReadOnlyModelViewSet):
    """Student management with admin features"""
    serializer_class = AdminUserSerializer
    permission_classes = [IsAuthenticated, IsStaffOrSuperAdmin]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = StudentFilter
    search_fields = ['name', 'email', 'user_code', 'phone_number']
    ordering_fields = ['registration_date', 'name', 'email']

    def get_queryset(self):
        return CustomUser.objects.students()

    @action(detail=True, methods=['post'])
    def toggle_active(self, request, pk=None):
        """Toggle student active status"""
        student = self.get_object()
        student.is_active = not student.is_active
        student.save(update_fields=['is_active'])

        log_admin_activity(
            admin=request.user,
            action='UPDATE',
            model_name='Student',
            object_id=student.id,
            description=f"{'Activated' if student.is_active else 'Deactivated'} student {student.email}",
            ip_address=get_client_ip(request)
        )

        return Response({
            'message': f"Student {'activated' if student.is_active else 'deactivated'} successfully",
            'is_active': student.is_active
        })

    def _bulk_set_active(self, request, is_active):
        student_ids = request.data.get('student_ids', [])
        if not isinstance(student_ids, list) or not student_ids:
            return Response({'error': 'student_ids must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

        updated = CustomUser.objects.students().filter(id__in=student_ids).update(is_active=is_active)
        verb = 'activated' if is_active else 'deactivated'

        log_admin_activity(
            admin=request.user,
            action='UPDATE',
            model_name='Student',
            description=f"Bulk {verb} {updated} students",
            ip_address=get_client_ip(request)
        )
        return Response({'message': f'{updated} students {verb} successfully', 'updated': updated})

    @action(detail=False, methods=['post'])
    def bulk_activate(self, request):
        """Bulk activate students"""
        return self._bulk_set_active(request, True)

    @action(detail=False, methods=['post'])
    def bulk_deactivate(self, request):
        """Bulk deactivate students"""
        return self._bulk_set_active(request, False)


EXPORT_TYPES = ('students', 'payments', 'certificates')


def _write_students(writer):
    writer.writerow([
        'ID', 'Intern ID', 'Name', 'Email', 'Phone', 'Enrollments',
        'Completed', 'Active', 'Registration Date'
    ])
    students = CustomUser.objects.students().annotate(
        enrollment_count=Count('enrollments', distinct=True),
        completed_count=Count('enrollments', filter=Q(enrollments__is_completed=True), distinct=True),
    )
    for student in students:
        writer.writerow([
            student.id,
            student.user_code or '',
            student.name or '',
            student.email,
            student.phone_number or '',
            student.enrollment_count,
            student.completed_count,
            'Yes' if student.is_active else 'No',
            student.registration_date.strftime('%Y-%m-%d')
        ])


def _write_payments(writer):
    writer.writerow([
        'ID', 'Student', 'Email', 'Internship', 'Amount', 'Currency', 'Method',
        'Status', 'Reference', 'Verified At', 'Created At'
    ])
    payments = Payment.objects.select_related('student', 'enrollment__internship')
    for payment in payments:
        writer.writerow([
            payment.id,
            payment.student.name or '',
            payment.student.email,
            payment.enrollment.internship.title,
            payment.amount,
            payment.currency,
            payment.method,
            payment.status,
            payment.razorpay_payment_id or payment.transaction_id or payment.razorpay_order_id,
            payment.verified_at.strftime('%Y-%m-%d %H:%M') if payment.verified_at else '',
            payment.created_at.strftime('%Y-%m-%d %H:%M')
        ])


def _write_certificates(writer):
    writer.writerow([
        'ID', 'Certificate Number', 'Student', 'Email', 'Internship',
        'Final Score', 'Issued At', 'Revoked', 'File'
    ])
    certificates = Certificate.objects.select_related('student', 'internship')
    for cert in certificates:
        writer.writerow([
            cert.id,
            cert.certificate_number,
            cert.student.name or cert.student.username,
            cert.student.email,
            cert.internship.title,
            cert.final_score,
            cert.issued_at.strftime('%Y-%m-%d'),
            'Yes' if cert.is_revoked else 'No',
            cert.certificate_file.url if cert.certificate_file else ''
        ])


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def export_data(request):
    """Export data to CSV"""
    export_type = request.data.get('type', 'students')
    if export_type not in EXPORT_TYPES:
        return Response(
            {'error': f"type must be one of: {', '.join(EXPORT_TYPES)}"},
            status=status.HTTP_400_BAD_REQUEST
        )

    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = (
        f'attachment; filename="{export_type}_{timezone.now().strftime("%Y%m%d")}.csv"'
    )
    writer = csv.writer(response)

    if export_type == 'students':
        _write_students(writer)
    elif export_type == 'payments':
        _write_payments(writer)
    else:
        _write_certificates(writer)

    log_admin_activity(
        admin=request.user,
        action='EXPORT',
        model_name='Export',
        description=f"Exported {export_type} data",
        ip_address=get_client_ip(request)
    )
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def toggle_staff_role(request):
    """Set is_staff_admin for a user"""
    user_id = request.data.get('user_id')
    is_staff_admin = request.data.get('is_staff_admin')

    if user_id is None or is_staff_admin is None:
        return Response({"error": "user_id and is_staff_admin are required."}, status=status.HTTP_400_BAD_REQUEST)

    try:
        user = CustomUser.objects.get(id=user_id)
    except (CustomUser.DoesNotExist, ValueError):
        return Response({"error": "User not found."}, status=status.HTTP_404_NOT_FOUND)

    if user == request.user:
        return Response({"error": "You cannot change your own role."}, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(is_staff_admin, str):
        is_staff_admin = is_staff_admin.lower() in ['true', '1']
    is_staff_admin = bool(is_staff_admin)

    # Keep is_staff in step for Django admin access
    user.is_staff_admin = is_staff_admin
    user.is_staff = is_staff_admin
    user.save(update_fields=['is_staff_admin', 'is_staff'])

    role_status = "promoted to staff" if is_staff_admin else "demoted from staff"
    log_admin_activity(
        admin=request.user,
        action='UPDATE',
        model_name='User',
        object_id=user.id,
        description=f"{user.email} {role_status}",
        ip_address=get_client_ip(request)
    )
    return Response({"message": f"{user.email} has been {role_status}."}, status=status.HTTP_200_OK)

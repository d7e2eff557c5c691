import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from admin_panel.permissions import IsStaffOrSuperAdmin
from admin_panel.utils import log_admin_activity, get_client_ip, create_notification
from tasks.serializers import TaskSerializer
from tasks.utils import unlock_first_task, get_enrollment_progress, calculate_final_score
from .models import Internship, Enrollment
from .serializers import InternshipSerializer, InternshipDetailSerializer, EnrollmentSerializer

logger = logging.getLogger(__name__)


class InternshipViewSet(viewsets.ModelViewSet):
    """
    Internship catalogue.
    Anyone can browse active internships; staff manage the catalogue.
    Students enroll and follow their progress through the extra actions.
    """
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active']
    search_fields = ['title', 'description']
    ordering_fields = ['created_at', 'title', 'duration_days']
    lookup_value_regex = r'\d+'

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [AllowAny()]
        if self.action in ['enroll', 'my_enrollments', 'progress']:
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsStaffOrSuperAdmin()]

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return InternshipDetailSerializer
        return InternshipSerializer

    def get_queryset(self):
        queryset = Internship.objects.select_related('created_by')
        user = self.request.user
        if user.is_authenticated and IsStaffOrSuperAdmin().has_permission(self.request, self):
            return queryset
        return queryset.filter(is_active=True)

    def perform_create(self, serializer):
        internship = serializer.save(created_by=self.request.user)
        log_admin_activity(
            admin=self.request.user,
            action='CREATE',
            model_name='Internship',
            object_id=internship.id,
            description=f"Created internship: {internship.title}",
            ip_address=get_client_ip(self.request)
        )

    def perform_update(self, serializer):
        internship = serializer.save()
        log_admin_activity(
            admin=self.request.user,
            action='UPDATE',
            model_name='Internship',
            object_id=internship.id,
            description=f"Updated internship: {internship.title}",
            ip_address=get_client_ip(self.request)
        )

    def destroy(self, request, *args, **kwargs):
        internship = self.get_object()
        if internship.enrollments.exists():
            return Response(
                {"error": "Cannot delete internship with active enrollments. Deactivate it instead."},
                status=status.HTTP_400_BAD_REQUEST
            )
        return super().destroy(request, *args, **kwargs)

    def perform_destroy(self, instance):
        internship_id = instance.id
        title = instance.title
        instance.delete()
        log_admin_activity(
            admin=self.request.user,
            action='DELETE',
            model_name='Internship',
            object_id=internship_id,
            description=f"Deleted internship: {title}",
            ip_address=get_client_ip(self.request)
        )

    @action(detail=True, methods=['post'])
    def enroll(self, request, pk=None):
        internship = Internship.objects.filter(pk=pk, is_active=True).first()
        if internship is None:
            return Response({"error": "Internship not found or inactive"}, status=status.HTTP_404_NOT_FOUND)

        if Enrollment.objects.filter(student=request.user, internship=internship).exists():
            return Response({"error": "Already enrolled in this internship"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            with transaction.atomic():
                enrollment = Enrollment.objects.create(student=request.user, internship=internship)
                first_task = unlock_first_task(enrollment)
        except IntegrityError:
            return Response({"error": "Already enrolled in this internship"}, status=status.HTTP_400_BAD_REQUEST)

        create_notification(
            title="Enrollment Successful",
            message=f"You have enrolled in {internship.title}. Your first task is now available.",
            notification_type='SUCCESS',
            priority='MEDIUM',
            user=request.user,
            link=f"/internships/{internship.id}/tasks",
        )
        logger.info(f"{request.user.email} enrolled in internship {internship.id}")

        return Response(
            {
                "message": "Successfully enrolled in internship",
                "enrollment": EnrollmentSerializer(enrollment).data,
                "first_task": TaskSerializer(first_task).data if first_task else None,
                "guidelines": {
                    "total_tasks": internship.total_tasks,
                    "duration_days": internship.duration_days,
                    "pass_percentage": internship.pass_percentage,
                    "task_deadline_hours": settings.LMS['TASK_DEADLINE_HOURS'],
                    "certificate_price": internship.certificate_price,
                },
            },
            status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['get'], url_path='my/enrollments')
    def my_enrollments(self, request):
        enrollments = Enrollment.objects.filter(student=request.user).select_related('internship')
        return Response(EnrollmentSerializer(enrollments, many=True).data)

    @action(detail=True, methods=['get'])
    def progress(self, request, pk=None):
        enrollment = Enrollment.objects.select_related('internship').filter(
            student=request.user, internship_id=pk
        ).first()
        if enrollment is None:
            return Response({"error": "You are not enrolled in this internship"}, status=status.HTTP_404_NOT_FOUND)

        data = get_enrollment_progress(enrollment)
        data['enrollment_id'] = enrollment.id
        data['score_breakdown'] = calculate_final_score(enrollment)
        return Response(data)

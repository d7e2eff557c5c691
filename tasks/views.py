# tasks/views.py
import logging

from django.db.models import Avg, Count, Q
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from admin_panel.pagination import StandardResultsSetPagination
from admin_panel.permissions import IsStaffOrSuperAdmin
from admin_panel.utils import log_admin_activity, get_client_ip
from internships.models import Enrollment, Internship
from .filters import SubmissionFilter
from .models import Task, Submission
from .serializers import (
    TaskSerializer, SubmissionSerializer, TaskSubmitSerializer,
    ReviewSerializer, BulkReviewSerializer,
)
from . import utils

logger = logging.getLogger(__name__)

REVIEW_VERBS = {'approve': 'approved', 'reject': 'rejected'}


def _access_payload(access, request):
    submission = access['submission']
    return {
        'is_unlocked': access['is_unlocked'],
        'unlock_time': access['unlock_time'],
        'deadline': access['deadline'],
        'hours_remaining': access['hours_remaining'],
        'wait_message': access['wait_message'],
        'can_submit': access['can_submit'],
        'cannot_submit_reason': access['cannot_submit_reason'],
        'submission': SubmissionSerializer(submission, context={'request': request}).data if submission else None,
    }


def _student_enrollment(request, internship_id):
    return Enrollment.objects.select_related('internship').filter(
        student=request.user, internship_id=internship_id
    ).first()


# ==========================================================
# STUDENT ENDPOINTS
# ==========================================================
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def internship_tasks(request, internship_id):
    """Task board for an enrolled student, with lock state per task"""
    internship = get_object_or_404(Internship, pk=internship_id)
    enrollment = _student_enrollment(request, internship.id)
    if enrollment is None:
        return Response({"error": "You are not enrolled in this internship"}, status=status.HTTP_403_FORBIDDEN)

    board = []
    for task in utils.active_tasks(internship):
        access = utils.describe_task_access(enrollment, task)
        data = TaskSerializer(task).data
        if not access['is_unlocked']:
            # Locked tasks only reveal their outline
            data['description'] = ''
            data['video_url'] = ''
            data['resources'] = []
        data.update(_access_payload(access, request))
        board.append(data)

    return Response({
        'internship': {'id': internship.id, 'title': internship.title},
        'enrollment_id': enrollment.id,
        'progress': utils.get_enrollment_progress(enrollment),
        'tasks': board,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def task_details(request, task_id):
    task = get_object_or_404(Task, pk=task_id, is_active=True)
    enrollment = _student_enrollment(request, task.internship_id)
    if enrollment is None:
        return Response({"error": "You are not enrolled in this internship"}, status=status.HTTP_403_FORBIDDEN)

    access = utils.describe_task_access(enrollment, task)
    if not access['is_unlocked']:
        return Response(
            {
                "error": "Task is locked",
                "wait_message": access['wait_message'],
                "unlock_time": access['unlock_time'],
                "hours_remaining": access['hours_remaining'],
            },
            status=status.HTTP_403_FORBIDDEN
        )

    data = TaskSerializer(task).data
    data.update(_access_payload(access, request))
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submit_task(request, task_id):
    task = Task.objects.select_related('internship').filter(pk=task_id, is_active=True).first()
    if task is None:
        return Response({"error": "Task not found"}, status=status.HTTP_404_NOT_FOUND)

    enrollment = _student_enrollment(request, task.internship_id)
    if enrollment is None:
        return Response({"error": "You are not enrolled in this internship"}, status=status.HTTP_403_FORBIDDEN)

    serializer = TaskSubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        submission = utils.submit_task(enrollment, task, request.user, serializer.validated_data)
    except utils.TaskAccessError as e:
        body = {"error": str(e)}
        body.update(e.extra)
        return Response(body, status=e.status_code)

    created = submission.attempt_number == 1
    return Response(
        {
            "message": "Task submitted successfully" if created else "Task resubmitted successfully",
            "submission": SubmissionSerializer(submission, context={'request': request}).data,
        },
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_submissions(request):
    submissions = Submission.objects.filter(student=request.user).select_related('task', 'enrollment__internship')

    internship_id = request.query_params.get('internship')
    if internship_id:
        submissions = submissions.filter(enrollment__internship_id=internship_id)
    status_filter = request.query_params.get('status')
    if status_filter:
        submissions = submissions.filter(status=status_filter.upper())

    serializer = SubmissionSerializer(submissions, many=True, context={'request': request})
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def submission_detail(request, submission_id):
    submission = get_object_or_404(
        Submission.objects.select_related('task', 'student', 'enrollment__internship'), pk=submission_id
    )
    if submission.student_id != request.user.id and not IsStaffOrSuperAdmin().has_permission(request, None):
        return Response({"error": "You do not have access to this submission"}, status=status.HTTP_403_FORBIDDEN)
    return Response(SubmissionSerializer(submission, context={'request': request}).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def leaderboard(request):
    internship = None
    internship_id = request.query_params.get('internship')
    if internship_id:
        internship = get_object_or_404(Internship, pk=internship_id)
    try:
        limit = max(1, min(int(request.query_params.get('limit', 10)), 100))
    except ValueError:
        return Response({"error": "limit must be a number"}, status=status.HTTP_400_BAD_REQUEST)
    return Response(utils.get_leaderboard(internship=internship, limit=limit))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def enrollment_performance(request, enrollment_id):
    enrollment = get_object_or_404(Enrollment.objects.select_related('internship', 'student'), pk=enrollment_id)
    if enrollment.student_id != request.user.id and not IsStaffOrSuperAdmin().has_permission(request, None):
        return Response({"error": "You do not have access to this enrollment"}, status=status.HTTP_403_FORBIDDEN)

    data = utils.get_performance_metrics(enrollment)
    data['enrollment_id'] = enrollment.id
    data['student'] = {'id': enrollment.student.id, 'name': enrollment.student.name, 'email': enrollment.student.email}
    data['internship'] = {'id': enrollment.internship.id, 'title': enrollment.internship.title}
    return Response(data)


# ==========================================================
# ADMIN REVIEW ENDPOINTS
# ==========================================================
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def admin_submissions(request):
    queryset = Submission.objects.select_related(
        'task', 'student', 'reviewed_by', 'enrollment__internship'
    ).order_by('submitted_at')
    queryset = SubmissionFilter(request.query_params, queryset=queryset).qs

    paginator = StandardResultsSetPagination()
    page = paginator.paginate_queryset(queryset, request)
    serializer = SubmissionSerializer(page, many=True, context={'request': request})
    return paginator.get_paginated_response(serializer.data)


@api_view(['PUT', 'POST'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def review_submission(request, submission_id):
    submission = get_object_or_404(
        Submission.objects.select_related('task', 'student', 'enrollment__internship'), pk=submission_id
    )
    serializer = ReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        result = utils.review_submission(
            submission,
            reviewer=request.user,
            action=data['action'],
            score=data.get('score'),
            feedback=data.get('admin_feedback', ''),
            allow_resubmission=data.get('allow_resubmission', True),
        )
    except ValueError as e:
        return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    log_admin_activity(
        admin=request.user,
        action='APPROVE' if data['action'] == 'approve' else 'REJECT',
        model_name='Submission',
        object_id=submission.id,
        description=f"{REVIEW_VERBS[data['action']].title()} task {submission.task.task_number} for {submission.student.email}",
        ip_address=get_client_ip(request)
    )

    next_task = result['next_task']
    return Response({
        "message": f"Submission {submission.status.lower()} successfully",
        "submission": SubmissionSerializer(submission, context={'request': request}).data,
        "next_task": {
            "id": next_task.id,
            "task_number": next_task.task_number,
            "title": next_task.title,
            "unlocks_at": result['next_unlock_at'],
        } if next_task else None,
        "internship_completed": result['internship_completed'],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def bulk_review(request):
    serializer = BulkReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    submissions = Submission.objects.select_related('task', 'student', 'enrollment__internship').filter(
        id__in=data['submission_ids']
    ).order_by('task__task_number')
    found = {s.id for s in submissions}

    reviewed, failed = [], [
        {"id": missing_id, "error": "Submission not found"}
        for missing_id in data['submission_ids'] if missing_id not in found
    ]
    for submission in submissions:
        try:
            utils.review_submission(
                submission, reviewer=request.user, action=data['action'],
                feedback=data.get('admin_feedback', ''),
            )
            reviewed.append(submission.id)
        except ValueError as e:
            failed.append({"id": submission.id, "error": str(e)})

    log_admin_activity(
        admin=request.user,
        action='APPROVE' if data['action'] == 'approve' else 'REJECT',
        model_name='Submission',
        description=f"Bulk {data['action']} of {len(reviewed)} submissions",
        ip_address=get_client_ip(request)
    )
    return Response({
        "message": f"{len(reviewed)} submissions {REVIEW_VERBS[data['action']]}",
        "reviewed": reviewed,
        "failed": failed,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def submission_stats(request):
    submissions = Submission.objects.all()
    internship_id = request.query_params.get('internship')
    if internship_id:
        submissions = submissions.filter(enrollment__internship_id=internship_id)

    totals = submissions.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=Submission.STATUS_PENDING)),
        resubmitted=Count('id', filter=Q(status=Submission.STATUS_RESUBMITTED)),
        approved=Count('id', filter=Q(status=Submission.STATUS_APPROVED)),
        rejected=Count('id', filter=Q(status=Submission.STATUS_REJECTED)),
        late=Count('id', filter=Q(is_late=True)),
        average_score=Avg('score', filter=Q(status=Submission.STATUS_APPROVED)),
    )
    totals['awaiting_review'] = totals['pending'] + totals['resubmitted']
    totals['average_score'] = round(totals['average_score'] or 0, 2)

    by_internship = list(
        submissions.values('enrollment__internship__id', 'enrollment__internship__title')
        .annotate(
            total=Count('id'),
            awaiting_review=Count('id', filter=Q(status__in=Submission.REVIEWABLE_STATUSES)),
        )
        .order_by('enrollment__internship__title')
    )
    totals['by_internship'] = [
        {
            'internship_id': row['enrollment__internship__id'],
            'internship_title': row['enrollment__internship__title'],
            'total': row['total'],
            'awaiting_review': row['awaiting_review'],
        }
        for row in by_internship
    ]
    return Response(totals)


class TaskManagementViewSet(viewsets.ModelViewSet):
    """Staff CRUD over internship tasks"""
    serializer_class = TaskSerializer
    permission_classes = [IsAuthenticated, IsStaffOrSuperAdmin]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['internship', 'submission_type', 'is_active']

    def get_queryset(self):
        return Task.objects.select_related('internship').order_by('internship_id', 'task_number')

    def perform_create(self, serializer):
        task = serializer.save()
        log_admin_activity(
            admin=self.request.user,
            action='CREATE',
            model_name='Task',
            object_id=task.id,
            description=f"Created task {task.task_number} for {task.internship.title}",
            ip_address=get_client_ip(self.request)
        )

    def perform_update(self, serializer):
        task = serializer.save()
        log_admin_activity(
            admin=self.request.user,
            action='UPDATE',
            model_name='Task',
            object_id=task.id,
            description=f"Updated task {task.task_number} of {task.internship.title}",
            ip_address=get_client_ip(self.request)
        )

    def perform_destroy(self, instance):
        task_id = instance.id
        if instance.submissions.exists():
            # Keep history intact; retire the task instead
            instance.is_active = False
            instance.save(update_fields=['is_active'])
            description = f"Deactivated task {instance.task_number} of {instance.internship.title}"
        else:
            description = f"Deleted task {instance.task_number} of {instance.internship.title}"
            instance.delete()
        log_admin_activity(
            admin=self.request.user,
            action='DELETE',
            model_name='Task',
            object_id=task_id,
            description=description,
            ip_address=get_client_ip(self.request)
        )

"""
Task progression rules for internship enrollments.

Tasks unlock one at a time. The first task opens on enrollment; every later
task opens once the previous task is approved and that task's waiting period
has elapsed. Unlocks are evaluated lazily whenever a task is read, so no
scheduler is needed. Scoring and completion live here too because both are
driven by the review flow.
"""
import logging
import math
import statistics
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from admin_panel.utils import create_notification, notify_admins
from .models import Task, TaskUnlock, Submission

logger = logging.getLogger(__name__)


class TaskAccessError(ValueError):
    """A student may not open or submit a task right now."""

    def __init__(self, message, status_code=400, **extra):
        super().__init__(message)
        self.status_code = status_code
        self.extra = extra


def lms_setting(key):
    return settings.LMS[key]


# -------------------------------
# TASK ORDERING & UNLOCKS
# -------------------------------
def active_tasks(internship):
    return Task.objects.filter(internship=internship, is_active=True).order_by('task_number')


def get_previous_task(task):
    return Task.objects.filter(
        internship_id=task.internship_id, is_active=True, task_number__lt=task.task_number
    ).order_by('-task_number').first()


def get_next_task(task):
    return Task.objects.filter(
        internship_id=task.internship_id, is_active=True, task_number__gt=task.task_number
    ).order_by('task_number').first()


def unlock_first_task(enrollment, now=None):
    """Open the first task of a fresh enrollment; returns it, or None for an empty internship"""
    now = now or timezone.now()
    first_task = active_tasks(enrollment.internship).first()
    if first_task is None:
        logger.warning(f"Internship {enrollment.internship_id} has no active tasks; nothing to unlock")
        return None

    TaskUnlock.objects.get_or_create(
        enrollment=enrollment,
        task=first_task,
        defaults={'unlocks_at': now, 'is_unlocked': True, 'unlocked_at': now},
    )
    return first_task


def schedule_next_unlock(enrollment, task, now=None):
    """After ``task`` is approved, start the wait for the task that follows it"""
    now = now or timezone.now()
    next_task = get_next_task(task)
    if next_task is None:
        return None, None

    unlocks_at = now + timedelta(hours=task.wait_time_hours)
    opens_now = unlocks_at <= now
    unlock, _ = TaskUnlock.objects.update_or_create(
        enrollment=enrollment,
        task=next_task,
        defaults={
            'unlocks_at': unlocks_at,
            'is_unlocked': opens_now,
            'unlocked_at': now if opens_now else None,
        },
    )
    logger.info(f"Task {next_task.task_number} for enrollment {enrollment.id} unlocks at {unlocks_at.isoformat()}")
    return next_task, unlock


def _open_status(available_at):
    return {
        'is_unlocked': True,
        'unlock_time': available_at,
        'deadline': available_at + timedelta(hours=lms_setting('TASK_DEADLINE_HOURS')),
        'hours_remaining': 0,
        'wait_message': '',
    }


def get_task_unlock_status(enrollment, task, now=None):
    now = now or timezone.now()
    unlock = TaskUnlock.objects.filter(enrollment=enrollment, task=task).first()
    previous = get_previous_task(task)

    if previous is None:
        return _open_status(unlock.unlocks_at if unlock else enrollment.enrolled_at)

    previous_submission = Submission.objects.filter(enrollment=enrollment, task=previous).first()
    if previous_submission is None or previous_submission.status != Submission.STATUS_APPROVED:
        return {
            'is_unlocked': False,
            'unlock_time': None,
            'deadline': None,
            'hours_remaining': None,
            'wait_message': f"Complete and get approval for Task {previous.task_number} first",
        }

    if unlock is None:
        return _open_status(previous_submission.reviewed_at or previous_submission.submitted_at)

    if unlock.unlocks_at <= now:
        if not unlock.is_unlocked:
            unlock.is_unlocked = True
            unlock.unlocked_at = now
            unlock.save(update_fields=['is_unlocked', 'unlocked_at'])
        return _open_status(unlock.unlocks_at)

    hours = math.ceil((unlock.unlocks_at - now).total_seconds() / 3600)
    return {
        'is_unlocked': False,
        'unlock_time': unlock.unlocks_at,
        'deadline': None,
        'hours_remaining': hours,
        'wait_message': f"Task unlocks in {hours} hour{'s' if hours != 1 else ''}",
    }


# -------------------------------
# SUBMISSIONS
# -------------------------------
def check_can_submit(enrollment, task, now=None):
    """
    Return ``(existing_submission, unlock_status)`` when the student may
    submit, otherwise raise :class:`TaskAccessError`.
    """
    now = now or timezone.now()
    unlock_status = get_task_unlock_status(enrollment, task, now)
    if not unlock_status['is_unlocked']:
        raise TaskAccessError(
            f"Task is locked. {unlock_status['wait_message']}",
            status_code=403,
            unlock_time=unlock_status['unlock_time'],
            hours_remaining=unlock_status['hours_remaining'],
        )

    existing = Submission.objects.filter(enrollment=enrollment, task=task).first()
    if existing is None:
        return None, unlock_status

    if existing.status in Submission.REVIEWABLE_STATUSES:
        raise TaskAccessError("You already have a submission pending review for this task")
    if existing.status == Submission.STATUS_APPROVED:
        raise TaskAccessError("This task has already been approved")
    if existing.attempt_number >= task.max_attempts:
        raise TaskAccessError(f"Maximum attempts ({task.max_attempts}) reached for this task")
    if existing.resubmission_allowed_until is None or existing.resubmission_allowed_until < now:
        raise TaskAccessError("The resubmission window for this task has closed")
    return existing, unlock_status


def describe_task_access(enrollment, task, now=None):
    now = now or timezone.now()
    access = get_task_unlock_status(enrollment, task, now)
    access['submission'] = Submission.objects.filter(enrollment=enrollment, task=task).first()
    try:
        check_can_submit(enrollment, task, now)
        access['can_submit'] = True
        access['cannot_submit_reason'] = ''
    except TaskAccessError as e:
        access['can_submit'] = False
        access['cannot_submit_reason'] = str(e)
    return access


def submit_task(enrollment, task, student, payload, now=None):
    """
    Record a submission (or a resubmission of a rejected one).

    ``payload`` carries already-validated ``submission_type``,
    ``github_repo_url``, ``google_form_url``, ``file`` and ``notes``.
    """
    now = now or timezone.now()
    submission_type = payload['submission_type']
    if not task.accepts(submission_type):
        raise TaskAccessError(
            f"Task {task.task_number} requires a {task.get_submission_type_display()} submission"
        )

    existing, unlock_status = check_can_submit(enrollment, task, now)
    upload = payload.get('file') if submission_type == Task.TYPE_FILE else None

    with transaction.atomic():
        submission = existing or Submission(enrollment=enrollment, task=task, student=student)
        if existing is not None:
            submission.status = Submission.STATUS_RESUBMITTED
            submission.attempt_number += 1
            submission.score = None
            submission.reviewed_at = None
            submission.reviewed_by = None
            submission.resubmission_allowed_until = None
        submission.submission_type = submission_type
        submission.github_repo_url = (payload.get('github_repo_url') or '') if submission_type == Task.TYPE_GITHUB else ''
        submission.google_form_url = (payload.get('google_form_url') or '') if submission_type == Task.TYPE_FORM else ''
        submission.notes = payload.get('notes') or ''
        submission.submitted_at = now
        submission.is_late = now > unlock_status['deadline']
        if upload is not None:
            submission.file = upload
            submission.file_name = upload.name
        elif submission_type != Task.TYPE_FILE:
            submission.file = None
            submission.file_name = ''
        submission.save()

    verb = 'resubmitted' if existing is not None else 'submitted'
    create_notification(
        title=f"Task {task.task_number} {verb}",
        message=f"Your work for \"{task.title}\" was {verb} and is awaiting review.",
        notification_type='INFO',
        priority='LOW',
        user=student,
    )
    notify_admins(
        title="New submission to review",
        message=(
            f"{student.name or student.email} {verb} Task {task.task_number} "
            f"of {enrollment.internship.title} (attempt {submission.attempt_number})."
        ),
        priority='MEDIUM',
    )
    logger.info(f"{student.email} {verb} task {task.id} (attempt {submission.attempt_number}, late={submission.is_late})")
    return submission


# -------------------------------
# REVIEW & COMPLETION
# -------------------------------
def review_submission(submission, reviewer, action, score=None, feedback='', allow_resubmission=True, now=None):
    now = now or timezone.now()
    if submission.status not in Submission.REVIEWABLE_STATUSES:
        raise ValueError(f"Submission has already been {submission.status.lower()}")

    task = submission.task
    enrollment = submission.enrollment
    result = {'submission': submission, 'next_task': None, 'next_unlock_at': None, 'internship_completed': False}

    if action == 'approve':
        score = task.points if score in (None, '') else float(score)
        if score < 0 or score > task.points:
            raise ValueError(f"Score must be between 0 and {task.points}")
    elif action == 'reject':
        score = 0
    else:
        raise ValueError("Action must be either 'approve' or 'reject'")

    with transaction.atomic():
        submission.score = score
        submission.admin_feedback = feedback or ''
        submission.reviewed_at = now
        submission.reviewed_by = reviewer

        if action == 'approve':
            submission.status = Submission.STATUS_APPROVED
            submission.resubmission_allowed_until = None
            submission.save()
            next_task, unlock = schedule_next_unlock(enrollment, task, now)
            if next_task is not None:
                result['next_task'] = next_task
                result['next_unlock_at'] = unlock.unlocks_at
            else:
                result['internship_completed'] = check_internship_completion(enrollment, now)
        else:
            submission.status = Submission.STATUS_REJECTED
            can_retry = allow_resubmission and submission.attempt_number < task.max_attempts
            submission.resubmission_allowed_until = (
                now + timedelta(days=lms_setting('RESUBMISSION_WINDOW_DAYS')) if can_retry else None
            )
            submission.save()

    student = submission.student
    if action == 'approve':
        message = f"Task {task.task_number} \"{task.title}\" was approved with {score:g}/{task.points} points."
        if result['next_task'] is not None:
            message += f" Task {result['next_task'].task_number} unlocks at {result['next_unlock_at']:%Y-%m-%d %H:%M}."
        create_notification(
            title=f"Task {task.task_number} approved", message=message,
            notification_type='SUCCESS', priority='MEDIUM', user=student,
        )
    else:
        message = f"Task {task.task_number} \"{task.title}\" needs changes."
        if feedback:
            message += f" Feedback: {feedback}"
        if submission.resubmission_allowed_until:
            message += f" You can resubmit until {submission.resubmission_allowed_until:%Y-%m-%d}."
        create_notification(
            title=f"Task {task.task_number} rejected", message=message,
            notification_type='WARNING', priority='HIGH', user=student,
        )
    logger.info(f"Submission {submission.id} {submission.status.lower()} by {reviewer.email} (score={score})")
    return result


def check_internship_completion(enrollment, now=None):
    """Mark the enrollment complete once every active task is approved"""
    if enrollment.is_completed:
        return True

    now = now or timezone.now()
    tasks = active_tasks(enrollment.internship)
    total_tasks = tasks.count()
    if total_tasks == 0:
        return False
    approved = Submission.objects.filter(
        enrollment=enrollment, task__in=tasks, status=Submission.STATUS_APPROVED
    ).count()
    if approved < total_tasks:
        return False

    breakdown = calculate_final_score(enrollment, now)
    enrollment.is_completed = True
    enrollment.completion_date = now
    enrollment.final_score = breakdown['final_score']
    enrollment.certificate_eligible = breakdown['certificate_eligible']
    enrollment.save(update_fields=['is_completed', 'completion_date', 'final_score', 'certificate_eligible'])

    internship = enrollment.internship
    if enrollment.certificate_eligible:
        create_notification(
            title="Internship completed!",
            message=(
                f"You finished {internship.title} with a final score of {enrollment.final_score}%. "
                f"Open the payment section to get your certificate for Rs. {internship.certificate_price}."
            ),
            notification_type='SUCCESS', priority='HIGH', user=enrollment.student,
        )
    else:
        create_notification(
            title="Internship completed",
            message=(
                f"You finished {internship.title} with a final score of {enrollment.final_score}%, "
                f"below the {internship.pass_percentage:g}% needed for a certificate."
            ),
            notification_type='WARNING', priority='HIGH', user=enrollment.student,
        )
    notify_admins(
        title="Internship completed",
        message=f"{enrollment.student.email} completed {internship.title} with {enrollment.final_score}%.",
        priority='LOW',
    )
    logger.info(f"Enrollment {enrollment.id} completed, final score {enrollment.final_score}")
    return True


# -------------------------------
# SCORING
# -------------------------------
def _interval_days(times):
    ordered = sorted(times)
    return [(b - a).total_seconds() / 86400 for a, b in zip(ordered, ordered[1:])]


def calculate_consistency_bonus(times):
    """Up to MAX_CONSISTENCY_BONUS points for evenly spaced submissions (3+ needed)"""
    if len(times) < 3:
        return 0.0
    std_dev = statistics.pstdev(_interval_days(times))
    bonus = max(0.0, 1 - std_dev / 7) * lms_setting('MAX_CONSISTENCY_BONUS')
    return round(bonus, 2)


def calculate_consistency_score(times):
    if len(times) < 2:
        return 0
    std_dev = statistics.pstdev(_interval_days(times))
    return round(max(0.0, 100 - std_dev * 10))


def _deadline_passed(unlock, now):
    if unlock is None:
        return False
    return now > unlock.unlocks_at + timedelta(hours=lms_setting('TASK_DEADLINE_HOURS'))


def calculate_final_score(enrollment, now=None):
    now = now or timezone.now()
    internship = enrollment.internship
    tasks = list(active_tasks(internship))
    total_tasks = len(tasks)
    submissions = list(
        Submission.objects.filter(enrollment=enrollment, task__is_active=True)
        .select_related('task').order_by('submitted_at')
    )
    unlocks = {u.task_id: u for u in TaskUnlock.objects.filter(enrollment=enrollment)}
    submitted_task_ids = {s.task_id for s in submissions}

    reviewed = [s for s in submissions if s.status in (Submission.STATUS_APPROVED, Submission.STATUS_REJECTED)]
    earned_points = sum(s.score or 0 for s in reviewed)
    max_points = sum(s.task.points for s in reviewed)

    skipped = [t for t in tasks if t.id not in submitted_task_ids and _deadline_passed(unlocks.get(t.id), now)]
    max_points += sum(t.points for t in skipped)

    base_score = (earned_points / max_points) * 100 if max_points else 0.0
    late_submissions = sum(1 for s in submissions if s.is_late)
    skipped_penalty = len(skipped) * lms_setting('SKIPPED_PENALTY_PERCENT')
    late_penalty = late_submissions * lms_setting('LATE_PENALTY_PERCENT')

    times = [s.submitted_at for s in submissions]
    consistency_bonus = calculate_consistency_bonus(times)

    final_score = base_score - skipped_penalty - late_penalty + consistency_bonus
    final_score = round(max(0.0, min(100.0, final_score)), 2)

    approved_tasks = sum(1 for s in submissions if s.status == Submission.STATUS_APPROVED)
    pass_percentage = internship.pass_percentage or lms_setting('DEFAULT_PASS_PERCENTAGE')

    return {
        'final_score': final_score,
        'base_score': round(base_score, 2),
        'earned_points': earned_points,
        'max_points': max_points,
        'total_tasks': total_tasks,
        'submitted_tasks': len(submissions),
        'approved_tasks': approved_tasks,
        'skipped_tasks': len(skipped),
        'late_submissions': late_submissions,
        'penalties': {
            'skipped': skipped_penalty,
            'late': late_penalty,
            'total': skipped_penalty + late_penalty,
        },
        'bonuses': {'consistency': consistency_bonus},
        'consistency_score': calculate_consistency_score(times),
        'pass_percentage': pass_percentage,
        'certificate_eligible': bool(
            total_tasks and final_score >= pass_percentage and approved_tasks >= total_tasks
        ),
    }


def get_performance_metrics(enrollment, now=None):
    now = now or timezone.now()
    breakdown = calculate_final_score(enrollment, now)
    submissions = list(enrollment.submissions.filter(task__is_active=True).select_related('task'))
    unlocks = {u.task_id: u for u in TaskUnlock.objects.filter(enrollment=enrollment)}
    deadline_hours = lms_setting('TASK_DEADLINE_HOURS')

    hours_before_deadline = []
    for s in submissions:
        unlock = unlocks.get(s.task_id)
        if unlock is None:
            continue
        deadline = unlock.unlocks_at + timedelta(hours=deadline_hours)
        hours_before_deadline.append((deadline - s.submitted_at).total_seconds() / 3600)

    approved = [s for s in submissions if s.status == Submission.STATUS_APPROVED]
    total_tasks = breakdown['total_tasks']

    breakdown['metrics'] = {
        'completion_rate': round(len(submissions) / total_tasks * 100) if total_tasks else 0,
        'avg_hours_before_deadline': (
            round(sum(hours_before_deadline) / len(hours_before_deadline), 1) if hours_before_deadline else 0
        ),
        'quality_score': round(sum(s.score or 0 for s in approved) / len(approved)) if approved else 0,
        'total_submissions': len(submissions),
        'approved_submissions': len(approved),
        'rejected_submissions': sum(1 for s in submissions if s.status == Submission.STATUS_REJECTED),
        'pending_submissions': sum(1 for s in submissions if s.status in Submission.REVIEWABLE_STATUSES),
    }
    return breakdown


def get_enrollment_progress(enrollment):
    tasks = list(active_tasks(enrollment.internship))
    statuses = dict(
        Submission.objects.filter(enrollment=enrollment, task__is_active=True).values_list('task_id', 'status')
    )
    approved = sum(1 for status in statuses.values() if status == Submission.STATUS_APPROVED)
    pending = sum(1 for status in statuses.values() if status in Submission.REVIEWABLE_STATUSES)
    current = next((t for t in tasks if statuses.get(t.id) != Submission.STATUS_APPROVED), None)
    total = len(tasks)
    return {
        'total_tasks': total,
        'completed_tasks': approved,
        'pending_reviews': pending,
        'percentage': round(approved / total * 100, 2) if total else 0,
        'current_task': {'id': current.id, 'task_number': current.task_number, 'title': current.title}
        if current else None,
        'is_completed': enrollment.is_completed,
        'final_score': enrollment.final_score,
        'certificate_eligible': enrollment.certificate_eligible,
        'certificate_purchased': enrollment.certificate_purchased,
    }


def get_leaderboard(internship=None, limit=10):
    from internships.models import Enrollment

    enrollments = Enrollment.objects.filter(is_completed=True, final_score__isnull=False)
    if internship is not None:
        enrollments = enrollments.filter(internship=internship)
    enrollments = enrollments.select_related('student', 'internship').order_by('-final_score', 'completion_date')

    return [
        {
            'rank': index,
            'student': {
                'id': e.student.id,
                'name': e.student.name or e.student.username,
                'user_code': e.student.user_code,
            },
            'internship': e.internship.title,
            'final_score': e.final_score,
            'completion_date': e.completion_date,
            'certificate_issued': e.certificate_purchased,
        }
        for index, e in enumerate(enrollments[:limit], start=1)
    ]

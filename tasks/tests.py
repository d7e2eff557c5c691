from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from admin_panel.models import Notification
from internships.models import Internship, Enrollment
from students.models import CustomUser
from .models import Task, TaskUnlock, Submission, GITHUB_REPO_PATTERN
from . import utils

REPO_URL = 'https://github.com/demo-student/portfolio'


def make_internship(task_count=3, **extra):
    internship = Internship.objects.create(title='Backend Internship', **extra)
    for number in range(1, task_count + 1):
        Task.objects.create(internship=internship, task_number=number, title=f"Task {number}")
    return internship


def github_payload(url=REPO_URL):
    return {'submission_type': 'github', 'github_repo_url': url, 'notes': ''}


class ScoringHelpersTestCase(TestCase):
    def test_consistency_bonus_needs_three_submissions(self):
        now = timezone.now()
        self.assertEqual(utils.calculate_consistency_bonus([now, now + timedelta(days=1)]), 0.0)

    def test_evenly_spaced_submissions_earn_full_bonus(self):
        now = timezone.now()
        times = [now + timedelta(days=i) for i in range(4)]
        self.assertEqual(utils.calculate_consistency_bonus(times), 5.0)

    def test_irregular_submissions_earn_partial_bonus(self):
        now = timezone.now()
        times = [now, now + timedelta(days=1), now + timedelta(days=8)]
        bonus = utils.calculate_consistency_bonus(times)
        self.assertGreater(bonus, 0)
        self.assertLess(bonus, 5.0)

    def test_github_pattern_accepts_repository_roots_only(self):
        for url in (REPO_URL, REPO_URL + "/", REPO_URL + ".git"):
            self.assertTrue(GITHUB_REPO_PATTERN.match(url), url)
        for url in (REPO_URL + "/tree/main", "https://github.com/a/b/anything/else", "https://github.com/only-owner"):
            self.assertIsNone(GITHUB_REPO_PATTERN.match(url), url)


class TaskProgressionTestCase(TestCase):
    """Unlock, submission and review rules driven with explicit clock values"""

    def setUp(self):
        self.t0 = timezone.now()
        self.student = CustomUser.objects.create_user(email='student@test.com', password='student123', name='Ada')
        self.reviewer = CustomUser.objects.create_user(
            email='reviewer@test.com', password='reviewer123', is_staff_admin=True
        )
        self.internship = make_internship(task_count=3)
        self.task1, self.task2, self.task3 = Task.objects.filter(internship=self.internship).order_by('task_number')
        self.enrollment = Enrollment.objects.create(student=self.student, internship=self.internship)
        utils.unlock_first_task(self.enrollment, now=self.t0)

    def submit(self, task, at):
        return utils.submit_task(self.enrollment, task, self.student, github_payload(), now=at)

    def test_first_task_open_and_second_locked(self):
        first = utils.get_task_unlock_status(self.enrollment, self.task1, now=self.t0)
        second = utils.get_task_unlock_status(self.enrollment, self.task2, now=self.t0)
        self.assertTrue(first['is_unlocked'])
        self.assertEqual(first['deadline'], self.t0 + timedelta(hours=24))
        self.assertFalse(second['is_unlocked'])
        self.assertEqual(second['wait_message'], "Complete and get approval for Task 1 first")

    def test_submitting_locked_task_is_forbidden(self):
        with self.assertRaises(utils.TaskAccessError) as ctx:
            self.submit(self.task2, self.t0)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_duplicate_pending_submission_rejected(self):
        self.submit(self.task1, self.t0 + timedelta(hours=1))
        with self.assertRaisesMessage(utils.TaskAccessError, "pending review"):
            self.submit(self.task1, self.t0 + timedelta(hours=2))

    def test_wrong_submission_type_rejected(self):
        payload = {'submission_type': 'form', 'google_form_url': 'https://docs.google.com/forms/d/abc'}
        with self.assertRaises(utils.TaskAccessError):
            utils.submit_task(self.enrollment, self.task1, self.student, payload, now=self.t0)

    def test_late_submission_is_flagged(self):
        submission = self.submit(self.task1, self.t0 + timedelta(hours=30))
        self.assertTrue(submission.is_late)

    def test_approval_starts_wait_for_next_task(self):
        submission = self.submit(self.task1, self.t0 + timedelta(hours=1))
        approved_at = self.t0 + timedelta(hours=2)
        result = utils.review_submission(submission, self.reviewer, 'approve', now=approved_at)

        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.STATUS_APPROVED)
        self.assertEqual(submission.score, 100)
        self.assertEqual(result['next_task'], self.task2)
        self.assertEqual(result['next_unlock_at'], approved_at + timedelta(hours=12))

        waiting = utils.get_task_unlock_status(self.enrollment, self.task2, now=approved_at + timedelta(hours=1))
        self.assertFalse(waiting['is_unlocked'])
        self.assertEqual(waiting['hours_remaining'], 11)
        self.assertEqual(waiting['wait_message'], "Task unlocks in 11 hours")

        opened = utils.get_task_unlock_status(self.enrollment, self.task2, now=approved_at + timedelta(hours=12))
        self.assertTrue(opened['is_unlocked'])
        self.assertTrue(TaskUnlock.objects.get(enrollment=self.enrollment, task=self.task2).is_unlocked)

    def test_approved_submission_cannot_be_reviewed_again(self):
        submission = self.submit(self.task1, self.t0 + timedelta(hours=1))
        utils.review_submission(submission, self.reviewer, 'approve', now=self.t0 + timedelta(hours=2))
        with self.assertRaisesMessage(ValueError, "already been approved"):
            utils.review_submission(submission, self.reviewer, 'reject')

    def test_score_above_task_points_rejected(self):
        submission = self.submit(self.task1, self.t0 + timedelta(hours=1))
        with self.assertRaises(ValueError):
            utils.review_submission(submission, self.reviewer, 'approve', score=150)

    def test_rejection_opens_resubmission_window(self):
        submission = self.submit(self.task1, self.t0 + timedelta(hours=1))
        rejected_at = self.t0 + timedelta(hours=2)
        utils.review_submission(submission, self.reviewer, 'reject', feedback='Add a README', now=rejected_at)

        submission.refresh_from_db()
        self.assertEqual(submission.status, Submission.STATUS_REJECTED)
        self.assertEqual(submission.score, 0)
        self.assertEqual(submission.resubmission_allowed_until, rejected_at + timedelta(days=7))

        resubmitted = self.submit(self.task1, self.t0 + timedelta(hours=3))
        self.assertEqual(resubmitted.pk, submission.pk)
        self.assertEqual(resubmitted.status, Submission.STATUS_RESUBMITTED)
        self.assertEqual(resubmitted.attempt_number, 2)
        self.assertIsNone(resubmitted.score)

    def test_resubmission_window_closes(self):
        submission = self.submit(self.task1, self.t0 + timedelta(hours=1))
        utils.review_submission(submission, self.reviewer, 'reject', now=self.t0 + timedelta(hours=2))
        with self.assertRaisesMessage(utils.TaskAccessError, "window for this task has closed"):
            self.submit(self.task1, self.t0 + timedelta(days=9))

    def test_max_attempts_enforced(self):
        self.task1.max_attempts = 1
        self.task1.save()
        submission = self.submit(self.task1, self.t0 + timedelta(hours=1))
        utils.review_submission(submission, self.reviewer, 'reject', now=self.t0 + timedelta(hours=2))
        submission.refresh_from_db()
        self.assertIsNone(submission.resubmission_allowed_until)
        with self.assertRaisesMessage(utils.TaskAccessError, "Maximum attempts (1)"):
            self.submit(self.task1, self.t0 + timedelta(hours=3))

    def test_skipped_task_counts_against_score(self):
        submission = self.submit(self.task1, self.t0 + timedelta(hours=1))
        utils.review_submission(submission, self.reviewer, 'approve', now=self.t0 + timedelta(hours=2))

        # Task 2 opens at +14h and its deadline passes at +38h
        breakdown = utils.calculate_final_score(self.enrollment, now=self.t0 + timedelta(hours=40))
        self.assertEqual(breakdown['skipped_tasks'], 1)
        self.assertEqual(breakdown['base_score'], 50.0)
        self.assertEqual(breakdown['final_score'], 45.0)
        self.assertFalse(breakdown['certificate_eligible'])

    def test_completion_marks_enrollment_eligible(self):
        at = self.t0
        for task in (self.task1, self.task2, self.task3):
            submission = self.submit(task, at + timedelta(hours=1))
            utils.review_submission(submission, self.reviewer, 'approve', now=at + timedelta(hours=2))
            at = at + timedelta(hours=2, minutes=task.wait_time_hours * 60)

        self.enrollment.refresh_from_db()
        self.assertTrue(self.enrollment.is_completed)
        self.assertTrue(self.enrollment.certificate_eligible)
        self.assertGreaterEqual(self.enrollment.final_score, 100.0)
        self.assertTrue(
            Notification.objects.filter(created_for=self.student, title="Internship completed!").exists()
        )

    def test_progress_reports_current_task(self):
        progress = utils.get_enrollment_progress(self.enrollment)
        self.assertEqual(progress['total_tasks'], 3)
        self.assertEqual(progress['completed_tasks'], 0)
        self.assertEqual(progress['current_task']['task_number'], 1)


class TaskAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.student = CustomUser.objects.create_user(email='student@test.com', password='student123', name='Ada')
        self.admin_user = CustomUser.objects.create_superuser(email='admin@test.com', password='admin123')
        self.internship = make_internship(task_count=2)
        self.task1, self.task2 = Task.objects.filter(internship=self.internship).order_by('task_number')
        self.task1.wait_time_hours = 0
        self.task1.save()
        self.enrollment = Enrollment.objects.create(student=self.student, internship=self.internship)
        utils.unlock_first_task(self.enrollment)

    def test_task_board_hides_locked_content(self):
        self.task2.description = 'Secret brief'
        self.task2.save()
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/tasks/internship/{self.internship.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        board = response.data['tasks']
        self.assertTrue(board[0]['is_unlocked'])
        self.assertFalse(board[1]['is_unlocked'])
        self.assertEqual(board[1]['description'], '')

    def test_board_requires_enrollment(self):
        outsider = CustomUser.objects.create_user(email='outsider@test.com', password='outsider123')
        self.client.force_authenticate(user=outsider)
        response = self.client.get(f'/api/tasks/internship/{self.internship.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_locked_task_details_forbidden(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/tasks/{self.task2.id}/details/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_github_url_rejected(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(
            f'/api/tasks/{self.task1.id}/submit/', github_payload('https://gitlab.com/a/b'), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_full_review_flow(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/tasks/{self.task1.id}/submit/', github_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        submission_id = response.data['submission']['id']

        response = self.client.post(f'/api/tasks/{self.task2.id}/submit/', github_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin_user)
        queue = self.client.get('/api/tasks/admin/submissions/', {'status': 'PENDING'})
        self.assertEqual(queue.status_code, status.HTTP_200_OK)
        self.assertEqual(queue.data['count'], 1)

        response = self.client.put(
            f'/api/tasks/admin/submissions/{submission_id}/review/',
            {'action': 'approve', 'admin_feedback': 'Nice work'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['next_task']['id'], self.task2.id)
        self.assertFalse(response.data['internship_completed'])

        self.client.force_authenticate(user=self.student)
        response = self.client.post(f'/api/tasks/{self.task2.id}/submit/', github_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(
            '/api/tasks/admin/submissions/bulk-review/',
            {'submission_ids': [response.data['submission']['id'], 9999], 'action': 'approve'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['reviewed']), 1)
        self.assertEqual(response.data['failed'][0]['id'], 9999)

        self.enrollment.refresh_from_db()
        self.assertTrue(self.enrollment.is_completed)
        self.assertEqual(self.enrollment.final_score, 100.0)
        self.assertTrue(self.enrollment.certificate_eligible)

        response = self.client.get('/api/tasks/leaderboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['rank'], 1)
        self.assertEqual(response.data[0]['final_score'], 100.0)

    def test_leaderboard_clamps_limit(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get('/api/tasks/leaderboard/', {'limit': -1})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/tasks/leaderboard/', {'limit': 'ten'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_student_cannot_review(self):
        submission = utils.submit_task(self.enrollment, self.task1, self.student, github_payload())
        self.client.force_authenticate(user=self.student)
        response = self.client.put(
            f'/api/tasks/admin/submissions/{submission.id}/review/', {'action': 'approve'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_performance_visible_to_owner_only(self):
        other = CustomUser.objects.create_user(email='other@test.com', password='other123')
        url = f'/api/tasks/admin/enrollments/{self.enrollment.id}/performance/'

        self.client.force_authenticate(user=other)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.student)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['enrollment_id'], self.enrollment.id)

    def test_deleting_task_with_submissions_deactivates_it(self):
        utils.submit_task(self.enrollment, self.task1, self.student, github_payload())
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.delete(f'/api/tasks/manage/{self.task1.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.task1.refresh_from_db()
        self.assertFalse(self.task1.is_active)

    def test_submission_stats(self):
        utils.submit_task(self.enrollment, self.task1, self.student, github_payload())
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.get('/api/tasks/admin/submission-stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['awaiting_review'], 1)

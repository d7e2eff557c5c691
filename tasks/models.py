# tasks/models.py
import re

from django.conf import settings
from django.db import models

GITHUB_REPO_PATTERN = re.compile(r'^https://github\.com/[\w\-.]+/[\w\-.]+?(\.git)?/?$')
GOOGLE_FORM_PATTERN = re.compile(r'^https://docs\.google\.com/forms/')


class Task(models.Model):
    TYPE_GITHUB = 'github'
    TYPE_FORM = 'form'
    TYPE_FILE = 'file'
    TYPE_ANY = 'any'
    SUBMISSION_TYPE_CHOICES = [
        (TYPE_GITHUB, 'GitHub Repository'),
        (TYPE_FORM, 'Google Form'),
        (TYPE_FILE, 'File Upload'),
        (TYPE_ANY, 'Any'),
    ]

    internship = models.ForeignKey('internships.Internship', on_delete=models.CASCADE, related_name='tasks')
    task_number = models.PositiveIntegerField()
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    video_url = models.URLField(max_length=500, blank=True, default='')
    resources = models.JSONField(default=list, blank=True)
    submission_type = models.CharField(max_length=10, choices=SUBMISSION_TYPE_CHOICES, default=TYPE_GITHUB)
    points = models.PositiveIntegerField(default=100)
    wait_time_hours = models.PositiveIntegerField(default=12)
    max_attempts = models.PositiveIntegerField(default=3)
    is_required = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['internship', 'task_number']
        unique_together = ['internship', 'task_number']

    def __str__(self):
        return f"Task {self.task_number}: {self.title}"

    def accepts(self, submission_type):
        return self.submission_type == self.TYPE_ANY or self.submission_type == submission_type


class TaskUnlock(models.Model):
    enrollment = models.ForeignKey('internships.Enrollment', on_delete=models.CASCADE, related_name='task_unlocks')
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='unlocks')
    unlocks_at = models.DateTimeField()
    is_unlocked = models.BooleanField(default=False)
    unlocked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ['enrollment', 'task']
        ordering = ['unlocks_at']

    def __str__(self):
        return f"{self.enrollment} - Task {self.task.task_number} @ {self.unlocks_at:%Y-%m-%d %H:%M}"


def submission_upload_path(instance, filename):
    return f"submissions/{instance.student_id}/task_{instance.task_id}/{filename}"


class Submission(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_RESUBMITTED = 'RESUBMITTED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_RESUBMITTED, 'Resubmitted'),
    ]
    REVIEWABLE_STATUSES = (STATUS_PENDING, STATUS_RESUBMITTED)

    TYPE_CHOICES = [
        (Task.TYPE_GITHUB, 'GitHub Repository'),
        (Task.TYPE_FORM, 'Google Form'),
        (Task.TYPE_FILE, 'File Upload'),
    ]

    enrollment = models.ForeignKey('internships.Enrollment', on_delete=models.CASCADE, related_name='submissions')
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='submissions')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='task_submissions')
    submission_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    github_repo_url = models.URLField(max_length=500, blank=True, default='')
    google_form_url = models.URLField(max_length=500, blank=True, default='')
    file = models.FileField(upload_to=submission_upload_path, blank=True, null=True)
    file_name = models.CharField(max_length=255, blank=True, default='')
    notes = models.TextField(blank=True, default='')

    status = models.CharField(max_length=15, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    score = models.FloatField(null=True, blank=True)
    admin_feedback = models.TextField(blank=True, default='')
    attempt_number = models.PositiveIntegerField(default=1)
    is_late = models.BooleanField(default=False)
    resubmission_allowed_until = models.DateTimeField(null=True, blank=True)

    submitted_at = models.DateTimeField()
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='reviewed_submissions'
    )

    class Meta:
        ordering = ['-submitted_at']
        unique_together = ['enrollment', 'task']

    def __str__(self):
        return f"{self.student.email} - Task {self.task.task_number} - {self.status}"

    @property
    def content_url(self):
        if self.submission_type == Task.TYPE_GITHUB:
            return self.github_repo_url
        if self.submission_type == Task.TYPE_FORM:
            return self.google_form_url
        return self.file.url if self.file else ''

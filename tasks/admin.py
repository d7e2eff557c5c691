from django.contrib import admin
from .models import Task, TaskUnlock, Submission


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('internship', 'task_number', 'title', 'submission_type', 'points', 'wait_time_hours', 'is_active')
    list_filter = ('internship', 'submission_type', 'is_active')
    search_fields = ('title', 'description')
    ordering = ('internship', 'task_number')


@admin.register(TaskUnlock)
class TaskUnlockAdmin(admin.ModelAdmin):
    list_display = ('enrollment', 'task', 'unlocks_at', 'is_unlocked', 'unlocked_at')
    list_filter = ('is_unlocked',)


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ('student', 'task', 'status', 'score', 'attempt_number', 'is_late', 'submitted_at', 'reviewed_at')
    list_filter = ('status', 'is_late', 'submission_type')
    search_fields = ('student__email', 'student__name', 'task__title')
    readonly_fields = ('submitted_at', 'reviewed_at', 'reviewed_by')

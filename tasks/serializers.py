from rest_framework import serializers

from .models import Task, Submission, GITHUB_REPO_PATTERN, GOOGLE_FORM_PATTERN

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class TaskSerializer(serializers.ModelSerializer):
    internship_title = serializers.CharField(source='internship.title', read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'internship', 'internship_title', 'task_number', 'title', 'description',
            'video_url', 'resources', 'submission_type', 'points', 'wait_time_hours',
            'max_attempts', 'is_required', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_resources(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Resources must be a list.")
        for item in value:
            if not isinstance(item, dict) or not item.get('url'):
                raise serializers.ValidationError("Each resource needs at least a 'url'.")
        return value

    def validate_max_attempts(self, value):
        if value < 1:
            raise serializers.ValidationError("A task must allow at least one attempt.")
        return value


class TaskOutlineSerializer(serializers.ModelSerializer):
    """Public view of a task: no content, just what the internship covers"""

    class Meta:
        model = Task
        fields = ['id', 'task_number', 'title', 'submission_type', 'points']


class SubmissionSerializer(serializers.ModelSerializer):
    task_number = serializers.IntegerField(source='task.task_number', read_only=True)
    task_title = serializers.CharField(source='task.title', read_only=True)
    task_points = serializers.IntegerField(source='task.points', read_only=True)
    max_attempts = serializers.IntegerField(source='task.max_attempts', read_only=True)
    internship = serializers.IntegerField(source='enrollment.internship_id', read_only=True)
    internship_title = serializers.CharField(source='enrollment.internship.title', read_only=True)
    student_name = serializers.SerializerMethodField()
    student_email = serializers.EmailField(source='student.email', read_only=True)
    reviewed_by_name = serializers.SerializerMethodField()
    file = serializers.SerializerMethodField()

    class Meta:
        model = Submission
        fields = [
            'id', 'enrollment', 'internship', 'internship_title', 'task', 'task_number',
            'task_title', 'task_points', 'max_attempts', 'student', 'student_name', 'student_email',
            'submission_type', 'github_repo_url', 'google_form_url', 'file', 'file_name', 'notes',
            'status', 'score', 'admin_feedback', 'attempt_number', 'is_late',
            'resubmission_allowed_until', 'submitted_at', 'reviewed_at', 'reviewed_by',
            'reviewed_by_name',
        ]
        read_only_fields = fields

    def get_student_name(self, obj):
        return obj.student.name or obj.student.username

    def get_reviewed_by_name(self, obj):
        if obj.reviewed_by is None:
            return None
        return obj.reviewed_by.name or obj.reviewed_by.email

    def get_file(self, obj):
        if obj.file:
            request = self.context.get('request')
            if request:
                return request.build_absolute_uri(obj.file.url)
            return obj.file.url
        return None


class TaskSubmitSerializer(serializers.Serializer):
    submission_type = serializers.ChoiceField(choices=Submission.TYPE_CHOICES)
    github_repo_url = serializers.CharField(required=False, allow_blank=True, max_length=500)
    google_form_url = serializers.CharField(required=False, allow_blank=True, max_length=500)
    file = serializers.FileField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate(self, attrs):
        submission_type = attrs['submission_type']
        if submission_type == 'github':
            url = (attrs.get('github_repo_url') or '').strip()
            if not url:
                raise serializers.ValidationError({'github_repo_url': "GitHub repository URL is required."})
            if not GITHUB_REPO_PATTERN.match(url):
                raise serializers.ValidationError(
                    {'github_repo_url': "Enter a valid GitHub repository URL (https://github.com/<owner>/<repo>)."}
                )
            attrs['github_repo_url'] = url
        elif submission_type == 'form':
            url = (attrs.get('google_form_url') or '').strip()
            if not url:
                raise serializers.ValidationError({'google_form_url': "Google Form URL is required."})
            if not GOOGLE_FORM_PATTERN.match(url):
                raise serializers.ValidationError(
                    {'google_form_url': "Enter a valid Google Form URL (https://docs.google.com/forms/...)."}
                )
            attrs['google_form_url'] = url
        else:
            upload = attrs.get('file')
            if not upload:
                raise serializers.ValidationError({'file': "A file is required for file submissions."})
            if upload.size > MAX_UPLOAD_BYTES:
                raise serializers.ValidationError({'file': "File size must be 10MB or less."})
        return attrs


class ReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    score = serializers.FloatField(required=False, allow_null=True, min_value=0)
    admin_feedback = serializers.CharField(required=False, allow_blank=True, max_length=5000)
    allow_resubmission = serializers.BooleanField(required=False, default=True)


class BulkReviewSerializer(serializers.Serializer):
    submission_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    admin_feedback = serializers.CharField(required=False, allow_blank=True, max_length=5000)

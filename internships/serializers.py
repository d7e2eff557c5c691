from rest_framework import serializers

from tasks.serializers import TaskOutlineSerializer
from tasks.utils import get_enrollment_progress
from .models import Internship, Enrollment


class InternshipSerializer(serializers.ModelSerializer):
    total_tasks = serializers.IntegerField(read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = Internship
        fields = [
            'id', 'title', 'description', 'cover_image', 'duration_days', 'pass_percentage',
            'certificate_price', 'is_active', 'total_tasks', 'created_by', 'created_by_name',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def validate_pass_percentage(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("Pass percentage must be between 0 and 100")
        return value

    def validate_certificate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Certificate price cannot be negative")
        return value


class InternshipDetailSerializer(InternshipSerializer):
    tasks = serializers.SerializerMethodField()

    class Meta(InternshipSerializer.Meta):
        fields = InternshipSerializer.Meta.fields + ['tasks']

    def get_tasks(self, obj):
        return TaskOutlineSerializer(obj.tasks.filter(is_active=True).order_by('task_number'), many=True).data


class EnrollmentSerializer(serializers.ModelSerializer):
    internship = InternshipSerializer(read_only=True)
    student_name = serializers.CharField(source='student.name', read_only=True)
    student_email = serializers.EmailField(source='student.email', read_only=True)
    progress = serializers.SerializerMethodField()

    class Meta:
        model = Enrollment
        fields = [
            'id', 'student', 'student_name', 'student_email', 'internship', 'enrolled_at',
            'is_completed', 'completion_date', 'final_score', 'certificate_eligible',
            'certificate_purchased', 'progress',
        ]
        read_only_fields = fields

    def get_progress(self, obj):
        return get_enrollment_progress(obj)

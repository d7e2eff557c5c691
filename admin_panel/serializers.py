from rest_framework import serializers
from .models import AdminActivity, Notification


class AdminActivitySerializer(serializers.ModelSerializer):
    admin_name = serializers.CharField(source='admin.name', read_only=True)
    admin_email = serializers.EmailField(source='admin.email', read_only=True)

    class Meta:
        model = AdminActivity
        fields = ['id', 'admin', 'admin_name', 'admin_email', 'action', 'model_name',
                  'object_id', 'description', 'ip_address', 'timestamp']


class NotificationSerializer(serializers.ModelSerializer):
    is_broadcast = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'notification_type', 'priority', 'link', 'is_read',
                  'created_at', 'created_for', 'is_broadcast']
        read_only_fields = ['created_at', 'created_for']

    def get_is_broadcast(self, obj):
        return obj.created_for_id is None


class DashboardStatsSerializer(serializers.Serializer):
    """Dashboard statistics"""
    total_students = serializers.IntegerField()
    active_students = serializers.IntegerField()
    inactive_students = serializers.IntegerField()
    total_internships = serializers.IntegerField()
    active_internships = serializers.IntegerField()
    total_enrollments = serializers.IntegerField()
    completed_enrollments = serializers.IntegerField()
    pending_reviews = serializers.IntegerField()
    total_certificates = serializers.IntegerField()
    revoked_certificates = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=12, decimal_places=2)
    pending_payments = serializers.IntegerField()
    new_students_this_month = serializers.IntegerField()
    certificates_this_month = serializers.IntegerField()


class StudentStatsSerializer(serializers.Serializer):
    """Student-related statistics"""
    id = serializers.IntegerField()
    name = serializers.CharField()
    username = serializers.CharField()
    email = serializers.EmailField()
    user_code = serializers.CharField()
    enrollment_count = serializers.SerializerMethodField()
    certificate_count = serializers.SerializerMethodField()
    registration_date = serializers.DateTimeField()
    is_active = serializers.BooleanField()

    def get_enrollment_count(self, obj):
        return obj.enrollments.count()

    def get_certificate_count(self, obj):
        return obj.certificates.count()


class RevenueAnalyticsSerializer(serializers.Serializer):
    """Revenue analytics"""
    month = serializers.CharField()
    total_revenue = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_count = serializers.IntegerField()
    new_enrollments = serializers.IntegerField()


class InternshipStatsSerializer(serializers.Serializer):
    """Internship statistics"""
    internship_id = serializers.IntegerField()
    title = serializers.CharField()
    is_active = serializers.BooleanField()
    total_tasks = serializers.IntegerField()
    enrollment_count = serializers.IntegerField()
    completed_count = serializers.IntegerField()
    eligible_count = serializers.IntegerField()
    certificate_count = serializers.IntegerField()
    average_score = serializers.FloatField()
    total_revenue = serializers.DecimalField(max_digits=12, decimal_places=2)

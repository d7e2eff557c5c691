from rest_framework import serializers
from .models import Certificate


class CertificateSerializer(serializers.ModelSerializer):
    student_name = serializers.SerializerMethodField(read_only=True)
    student_email = serializers.EmailField(source="student.email", read_only=True)
    internship_title = serializers.CharField(source="internship.title", read_only=True)
    issued_by_name = serializers.CharField(source="issued_by.name", read_only=True, default=None)
    certificate_file = serializers.SerializerMethodField()

    class Meta:
        model = Certificate
        fields = [
            "id", "student", "student_name", "student_email", "enrollment", "internship", "internship_title",
            "certificate_number", "final_score", "completion_date", "issued_at", "issued_by", "issued_by_name",
            "certificate_file", "is_revoked", "revoked_reason", "revoked_at",
        ]
        read_only_fields = fields

    def get_student_name(self, obj):
        return getattr(obj.student, "name", None) or getattr(obj.student, "username", "Unknown Student")

    def get_certificate_file(self, obj):
        if obj.certificate_file:
            request = self.context.get('request')
            if request:
                return request.build_absolute_uri(obj.certificate_file.url)
            return obj.certificate_file.url
        return None


class RevokeCertificateSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")

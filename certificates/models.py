import random

from django.db import models
from django.utils import timezone
from django.conf import settings


def generate_certificate_number():
    """CERT-<year>-<6 digits>, retried until unused"""
    year = timezone.now().year
    while True:
        number = f"CERT-{year}-{random.randint(0, 999999):06d}"
        if not Certificate.objects.filter(certificate_number=number).exists():
            return number


class Certificate(models.Model):
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="certificates")
    enrollment = models.OneToOneField(
        "internships.Enrollment", on_delete=models.CASCADE, related_name="certificate"
    )
    internship = models.ForeignKey("internships.Internship", on_delete=models.CASCADE, related_name="certificates")
    certificate_number = models.CharField(max_length=50, unique=True, blank=True)
    final_score = models.FloatField(default=0)
    completion_date = models.DateTimeField(null=True, blank=True)
    issued_at = models.DateTimeField(default=timezone.now)
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="issued_certificates"
    )
    certificate_file = models.FileField(upload_to="certificates/", blank=True, null=True)

    is_revoked = models.BooleanField(default=False)
    revoked_reason = models.TextField(blank=True, default="")
    revoked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-issued_at"]

    def save(self, *args, **kwargs):
        if not self.certificate_number:
            self.certificate_number = generate_certificate_number()
        super().save(*args, **kwargs)

    def __str__(self):
        student_name = getattr(self.student, "name", None) or getattr(self.student, "username", "Unknown Student")
        return f"{self.certificate_number} - {student_name} - {self.internship.title}"

from decimal import Decimal

from django.conf import settings
from django.db import models


class Internship(models.Model):
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    cover_image = models.URLField(max_length=500, blank=True, default='')
    duration_days = models.PositiveIntegerField(default=35)
    pass_percentage = models.FloatField(default=75.0)
    certificate_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('499.00'))
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='created_internships'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def total_tasks(self):
        return self.tasks.filter(is_active=True).count()


class Enrollment(models.Model):
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='enrollments')
    internship = models.ForeignKey(Internship, on_delete=models.CASCADE, related_name='enrollments')
    enrolled_at = models.DateTimeField(auto_now_add=True)
    is_completed = models.BooleanField(default=False)
    completion_date = models.DateTimeField(null=True, blank=True)
    final_score = models.FloatField(null=True, blank=True)
    certificate_eligible = models.BooleanField(default=False)
    certificate_purchased = models.BooleanField(default=False)

    class Meta:
        ordering = ['-enrolled_at']
        unique_together = ['student', 'internship']

    def __str__(self):
        return f"{self.student.email} - {self.internship.title}"

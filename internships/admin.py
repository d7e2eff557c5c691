from django.contrib import admin
from .models import Internship, Enrollment


@admin.register(Internship)
class InternshipAdmin(admin.ModelAdmin):
    list_display = ("title", "duration_days", "pass_percentage", "certificate_price", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("title", "description")
    readonly_fields = ("created_at", "updated_at", "created_by")


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("student", "internship", "enrolled_at", "is_completed", "final_score",
                    "certificate_eligible", "certificate_purchased")
    list_filter = ("is_completed", "certificate_eligible", "certificate_purchased", "internship")
    search_fields = ("student__email", "student__name", "internship__title")
    readonly_fields = ("enrolled_at", "completion_date", "final_score")

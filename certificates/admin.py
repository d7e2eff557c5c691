from django.contrib import admin
from .models import Certificate


@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = ("certificate_number", "student", "internship", "final_score", "issued_at", "is_revoked")
    list_filter = ("is_revoked", "internship")
    search_fields = ("certificate_number", "student__email", "student__name")
    readonly_fields = ("certificate_number", "issued_at", "issued_by", "revoked_at")

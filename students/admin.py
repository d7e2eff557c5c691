from django.contrib import admin
from .models import CustomUser, EmailOTP

# -------------------------------
# CustomUser Admin
# -------------------------------
@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = (
        'user_code',
        'email',
        'name',
        'phone_number',
        'is_active',
        'is_staff_admin',
        'is_superadmin',
        'registration_date',
    )
    search_fields = ('user_code', 'email', 'name')
    list_filter = ('is_active', 'is_staff_admin', 'is_superadmin')
    readonly_fields = ('registration_date', 'user_code', 'last_login')
    exclude = ('password',)

# -------------------------------
# EmailOTP Admin
# -------------------------------
@admin.register(EmailOTP)
class EmailOTPAdmin(admin.ModelAdmin):
    list_display = ('user', 'purpose', 'created_at', 'expires_at', 'is_used', 'attempts')
    search_fields = ('user__email',)
    list_filter = ('is_used', 'purpose')
    readonly_fields = ('created_at', 'expires_at')

from django.contrib import admin
from .models import AdminActivity, Notification


@admin.register(AdminActivity)
class AdminActivityAdmin(admin.ModelAdmin):
    list_display = ['admin', 'action', 'model_name', 'object_id', 'timestamp', 'ip_address']
    list_filter = ['action', 'model_name', 'timestamp']
    search_fields = ['admin__email', 'description', 'ip_address']
    readonly_fields = ['admin', 'action', 'model_name', 'object_id', 'description', 'ip_address', 'timestamp']
    date_hierarchy = 'timestamp'

    # Audit rows are written by the API only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'notification_type', 'priority', 'recipient', 'is_read', 'created_at']
    list_filter = ['notification_type', 'priority', 'is_read', ('created_for', admin.EmptyFieldListFilter)]
    search_fields = ['title', 'message', 'created_for__email']
    readonly_fields = ['created_at']
    date_hierarchy = 'created_at'
    actions = ['mark_as_read']

    @admin.display(description='Recipient')
    def recipient(self, obj):
        return obj.created_for.email if obj.created_for_id else 'All staff'

    @admin.action(description='Mark selected notifications as read')
    def mark_as_read(self, request, queryset):
        updated = queryset.update(is_read=True)
        self.message_user(request, f"{updated} notifications marked as read.")

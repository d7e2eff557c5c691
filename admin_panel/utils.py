from django.core.mail import send_mail
from django.conf import settings
from .models import Notification, AdminActivity
import logging

logger = logging.getLogger(__name__)


def log_admin_activity(admin, action, model_name, object_id=None, description="", ip_address=None):
    """Helper function to log admin activities"""
    try:
        AdminActivity.objects.create(
            admin=admin,
            action=action,
            model_name=model_name,
            object_id=object_id,
            description=description,
            ip_address=ip_address
        )
    except Exception as e:
        logger.error(f"Failed to log admin activity: {str(e)}")


def get_client_ip(request):
    """Get client IP address"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def create_notification(title, message, priority='MEDIUM', user=None, notification_type='INFO', link=''):
    """Helper function to create notifications"""
    try:
        notification = Notification.objects.create(
            title=title,
            message=message,
            priority=priority,
            notification_type=notification_type,
            link=link,
            created_for=user
        )
        return notification
    except Exception as e:
        logger.error(f"Failed to create notification: {str(e)}")
        return None


def notify_admins(title, message, priority='MEDIUM', notification_type='INFO', link=''):
    """Broadcast to the staff feed"""
    return create_notification(
        title, message, priority=priority, user=None,
        notification_type=notification_type, link=link,
    )


def send_email_notification(subject, message, recipient_list, html_message=None):
    """Send email notification"""
    recipient_list = [r for r in recipient_list if r]
    if not recipient_list:
        return False
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=f"{settings.ORGANIZATION_NAME} <{settings.DEFAULT_FROM_EMAIL}>",
            recipient_list=recipient_list,
            html_message=html_message,
            fail_silently=False,
        )
        return True
    except Exception as e:
        logger.error(f"Failed to send email: {str(e)}")
        return False

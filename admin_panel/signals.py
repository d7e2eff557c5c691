from django.db.models.signals import post_save
from django.dispatch import receiver
from django.contrib.auth.signals import user_logged_in, user_logged_out
from students.models import CustomUser
from .models import AdminActivity
from .utils import notify_admins, get_client_ip
import logging

logger = logging.getLogger(__name__)


@receiver(post_save, sender=CustomUser)
def notify_new_student(sender, instance, created, **kwargs):
    """Tell staff when a new student registers"""
    if created and not instance.is_admin:
        notify_admins(
            title="New Student Registration",
            message=f"New student {instance.name or instance.username} ({instance.email}) has registered",
            priority="LOW",
            link=f"/admin/students/{instance.id}",
        )


@receiver(user_logged_in)
def log_user_login(sender, request, user, **kwargs):
    """Log admin login"""
    if user.is_admin:
        try:
            AdminActivity.objects.create(
                admin=user,
                action='LOGIN',
                model_name='User',
                object_id=user.id,
                description=f"Admin {user.email} logged in",
                ip_address=get_client_ip(request) if request is not None else None
            )
        except Exception as e:
            logger.error(f"Failed to log login: {str(e)}")


@receiver(user_logged_out)
def log_user_logout(sender, request, user, **kwargs):
    """Log admin logout"""
    if user and user.is_admin:
        try:
            AdminActivity.objects.create(
                admin=user,
                action='LOGOUT',
                model_name='User',
                object_id=user.id,
                description=f"Admin {user.email} logged out",
                ip_address=get_client_ip(request) if request is not None else None
            )
        except Exception as e:
            logger.error(f"Failed to log logout: {str(e)}")

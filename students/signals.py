import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from admin_panel.utils import create_notification
from .models import CustomUser

logger = logging.getLogger(__name__)


@receiver(post_save, sender=CustomUser)
def welcome_new_student(sender, instance, created, **kwargs):
    """Greet every new student in their notification feed"""
    if not created or instance.is_admin:
        return
    create_notification(
        title="Welcome aboard!",
        message=(
            f"Hi {instance.name or instance.username}, your intern ID is {instance.user_code}. "
            "Enroll in an internship to unlock your first task."
        ),
        notification_type='SUCCESS',
        priority='LOW',
        user=instance,
    )

# students/models.py
import random
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import (
    AbstractBaseUser, PermissionsMixin, BaseUserManager
)
from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone
from rest_framework.authtoken.models import Token


class CustomUserManager(BaseUserManager):
    """Custom manager where email is the unique identifier for authentication"""
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("The Email field is required")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_superadmin", True)
        extra_fields.setdefault("is_active", True)
        return self.create_user(email, password, **extra_fields)

    def students(self):
        return self.filter(is_staff=False, is_staff_admin=False, is_superadmin=False)

    def staff(self):
        return self.filter(
            models.Q(is_staff=True) | models.Q(is_staff_admin=True) | models.Q(is_superadmin=True)
        )


class CustomUser(AbstractBaseUser, PermissionsMixin):
    ROLE_STUDENT = 'STUDENT'
    ROLE_ADMIN = 'ADMIN'

    email = models.EmailField(unique=True, max_length=255)
    username = models.CharField(max_length=150, blank=True, null=True)
    name = models.CharField(max_length=50, blank=True, null=True)
    phone_number = models.CharField(max_length=20, blank=True, null=True)
    user_code = models.CharField(max_length=20, unique=True, blank=True, null=True)
    registration_date = models.DateTimeField(auto_now_add=True)

    is_active = models.BooleanField(default=True)
    # role fields
    is_superadmin = models.BooleanField(default=False)
    is_staff_admin = models.BooleanField(default=False)
    is_staff = models.BooleanField(default=False)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = CustomUserManager()

    class Meta:
        ordering = ['-registration_date']

    @property
    def is_admin(self):
        return bool(self.is_staff or self.is_staff_admin or self.is_superadmin)

    @property
    def role(self):
        return self.ROLE_ADMIN if self.is_admin else self.ROLE_STUDENT

    def generate_user_code(self):
        """INT<year><nnn> for students, ADM<year><nnn> for staff"""
        prefix = 'ADM' if self.is_admin else 'INT'
        year = timezone.now().year
        base = f"{prefix}{year}"
        count = CustomUser.objects.filter(user_code__startswith=base).count()
        code = f"{base}{count + 1:03d}"
        while CustomUser.objects.filter(user_code=code).exists():
            count += 1
            code = f"{base}{count + 1:03d}"
        return code

    def save(self, *args, **kwargs):
        if not self.username:
            self.username = self.email.split('@')[0]
        if not self.user_code:
            self.user_code = self.generate_user_code()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.email or str(self.id)


# -------------------------------
# EMAIL OTP MODEL
# -------------------------------
class EmailOTP(models.Model):
    PURPOSE_PASSWORD_RESET = 'password_reset'
    PURPOSE_CHOICES = [
        (PURPOSE_PASSWORD_RESET, 'Password Reset'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='otps')
    code = models.CharField(max_length=6)
    purpose = models.CharField(max_length=50, choices=PURPOSE_CHOICES, default=PURPOSE_PASSWORD_RESET)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()
    is_used = models.BooleanField(default=False)
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = 5

    def __str__(self):
        return f"{self.user.email} - {self.purpose}"

    @classmethod
    def generate_otp(cls, user, purpose=PURPOSE_PASSWORD_RESET):
        """Issue a fresh code and retire any unused ones for the same purpose"""
        cls.objects.filter(user=user, purpose=purpose, is_used=False).update(is_used=True)
        code = f"{random.randint(100000, 999999)}"
        minutes = settings.LMS['OTP_EXPIRY_MINUTES']
        expires_at = timezone.now() + timedelta(minutes=minutes)
        return cls.objects.create(user=user, code=code, purpose=purpose, expires_at=expires_at)

    def is_expired(self):
        return timezone.now() > self.expires_at

    def mark_as_used(self):
        self.is_used = True
        self.save(update_fields=['is_used'])

    def increment_attempt(self):
        self.attempts += 1
        if self.attempts >= self.max_attempts:
            self.is_used = True
        self.save(update_fields=['attempts', 'is_used'])

    @classmethod
    def clean_expired_otps(cls):
        cls.objects.filter(expires_at__lt=timezone.now(), is_used=False).delete()


# -------------------------------
# DRF TOKEN SIGNAL
# -------------------------------
@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_auth_token(sender, instance=None, created=False, **kwargs):
    if created:
        Token.objects.get_or_create(user=instance)

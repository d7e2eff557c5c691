# utils.py
import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

logger = logging.getLogger(__name__)


def sender_address():
    return f"{settings.ORGANIZATION_NAME} <{settings.DEFAULT_FROM_EMAIL}>"


def send_otp_email(user, otp):
    subject = "Your Password Reset Code"
    to = [user.email]
    minutes = settings.LMS['OTP_EXPIRY_MINUTES']

    # Plain text (for email clients that don't support HTML)
    text_content = f"""
    Hello {user.name or user.email},

    Your password reset code is: {otp.code}

    This code will expire in {minutes} minutes.

    If you didn't request this, please ignore this email.
    """

    html_content = f"""
    <html>
      <body style="font-family: Arial, sans-serif; background-color: #f9fafb; padding: 30px;">
        <div style="max-width: 600px; margin: auto; background-color: #ffffff; border-radius: 10px; padding: 30px;">
          <h2 style="color: #4a4a4a; text-align: center;">Password Reset</h2>
          <p style="font-size: 16px; color: #333333;">
            Hello <strong>{user.name or user.email}</strong>,
          </p>
          <p style="font-size: 15px; color: #555;">
            Use the code below to reset your {settings.ORGANIZATION_NAME} password.
          </p>
          <div style="text-align: center; margin: 30px 0;">
            <span style="display: inline-block; font-size: 28px; letter-spacing: 6px; font-weight: bold; color: #2b6cb0;">
              {otp.code}
            </span>
          </div>
          <p style="font-size: 15px; color: #555;">
            This code will expire in <strong>{minutes} minutes</strong>.
          </p>
          <p style="font-size: 14px; color: #777;">
            If you didn't request this, please ignore this email.
          </p>
        </div>
      </body>
    </html>
    """

    msg = EmailMultiAlternatives(subject, text_content, sender_address(), to)
    msg.attach_alternative(html_content, "text/html")
    msg.send()


def send_welcome_email(user):
    """Registration greeting; failures are logged, never raised"""
    text_content = (
        f"Hello {user.name or user.email},\n\n"
        f"Welcome to {settings.ORGANIZATION_NAME}! Your intern ID is {user.user_code}.\n"
        f"Browse internships at {settings.FRONTEND_URL}/internships and enroll to unlock your first task.\n"
    )
    html_content = f"""
    <html>
      <body style="font-family: Arial, sans-serif; padding: 30px;">
        <h2>Welcome, {user.name or user.email}!</h2>
        <p>Your intern ID is <strong>{user.user_code}</strong>.</p>
        <p><a href="{settings.FRONTEND_URL}/internships">Browse internships</a> and enroll to unlock your first task.</p>
      </body>
    </html>
    """
    try:
        msg = EmailMultiAlternatives(
            f"Welcome to {settings.ORGANIZATION_NAME}", text_content, sender_address(), [user.email]
        )
        msg.attach_alternative(html_content, "text/html")
        msg.send()
    except Exception as e:
        logger.error(f"Failed to send welcome email to {user.email}: {str(e)}")

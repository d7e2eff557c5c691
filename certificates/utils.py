import os
import textwrap
import logging

from PIL import Image, ImageDraw, ImageFont
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from admin_panel.utils import create_notification, notify_admins, send_email_notification
from .models import Certificate

logger = logging.getLogger(__name__)

CANVAS_SIZE = (2000, 1414)
BORDER_COLOR = "#1a56db"
ACCENT_COLOR = "#b8860b"


def _load_fonts():
    font_path = os.path.join(settings.BASE_DIR, "static", "fonts", "Montserrat-Bold.ttf")
    try:
        return {
            "title": ImageFont.truetype(font_path, 96),
            "name": ImageFont.truetype(font_path, 110),
            "body": ImageFont.truetype(font_path, 44),
            "details": ImageFont.truetype(font_path, 36),
        }
    except OSError:
        logger.warning("Custom font not found, using default font.")
        default = ImageFont.load_default()
        return {"title": default, "name": default, "body": default, "details": default}


def generate_certificate_image(certificate):
    """
    Draw the certificate PNG and save it to MEDIA_ROOT/certificates/.
    A blank bordered canvas is used unless a template image is present.
    """
    output_dir = os.path.join(settings.MEDIA_ROOT, "certificates")
    os.makedirs(output_dir, exist_ok=True)

    template_path = os.path.join(settings.MEDIA_ROOT, "certificate_templates", "certificate_template.png")
    if os.path.exists(template_path):
        img = Image.open(template_path).convert("RGB").resize(CANVAS_SIZE)
    else:
        img = Image.new("RGB", CANVAS_SIZE, "white")
    draw = ImageDraw.Draw(img)
    img_width, img_height = img.size

    draw.rectangle([30, 30, img_width - 30, img_height - 30], outline=BORDER_COLOR, width=12)
    draw.rectangle([60, 60, img_width - 60, img_height - 60], outline=ACCENT_COLOR, width=4)

    fonts = _load_fonts()

    def draw_centered(text, font, y, fill="#111827"):
        bbox = draw.multiline_textbbox((0, 0), text, font=font, align="center")
        x = (img_width - (bbox[2] - bbox[0])) / 2
        draw.multiline_text((x, y), text, font=font, fill=fill, align="center")

    student = certificate.student
    internship = certificate.internship
    completed_on = timezone.localtime(certificate.completion_date or certificate.issued_at)

    draw_centered(settings.ORGANIZATION_NAME.upper(), fonts["details"], 140, fill=BORDER_COLOR)
    draw_centered("CERTIFICATE OF COMPLETION", fonts["title"], 230)
    draw_centered("This is to certify that", fonts["body"], 420, fill="#4b5563")
    draw_centered((student.name or student.username).upper(), fonts["name"], 510, fill=ACCENT_COLOR)
    draw_centered(
        textwrap.fill(
            f"has successfully completed the {internship.duration_days}-day {internship.title} "
            f"with a final score of {certificate.final_score:.2f}%",
            width=60,
        ),
        fonts["body"], 700, fill="#374151"
    )
    draw_centered(f"Completed on {completed_on.strftime('%B %d, %Y')}", fonts["details"], 920, fill="#374151")
    draw_centered(f"Certificate No: {certificate.certificate_number}", fonts["details"], 1150, fill="#6b7280")
    draw_centered(f"Verify at {settings.FRONTEND_URL}/verify/{certificate.certificate_number}",
                  fonts["details"], 1210, fill="#6b7280")

    filename = f"{certificate.certificate_number}.png"
    img.save(os.path.join(output_dir, filename))

    logger.info(f"Certificate image generated for {student.email}: {filename}")
    return f"certificates/{filename}"


def send_certificate_email(certificate):
    student = certificate.student
    return send_email_notification(
        subject="Your Internship Certificate Is Ready",
        message=(
            f"Dear {student.name or student.email},\n\n"
            f"Congratulations on completing {certificate.internship.title} "
            f"with a final score of {certificate.final_score:.2f}%.\n\n"
            f"Certificate Number: {certificate.certificate_number}\n"
            f"Download it from your dashboard: {settings.FRONTEND_URL}/certificates\n\n"
            f"Best regards,\n{settings.ORGANIZATION_NAME} Team"
        ),
        recipient_list=[student.email],
    )


def issue_certificate(enrollment, issued_by=None):
    """
    Issue the certificate for a finished, paid enrollment.
    Returns the existing certificate when one was already issued.
    Raises ValueError when the enrollment does not qualify.
    """
    existing = Certificate.objects.filter(enrollment=enrollment).first()
    if existing is not None:
        return existing

    if not enrollment.is_completed:
        raise ValueError("Internship not completed yet")
    if not enrollment.certificate_eligible:
        raise ValueError("Final score is below the pass percentage")
    if not enrollment.certificate_purchased:
        raise ValueError("Certificate fee has not been paid")

    with transaction.atomic():
        certificate = Certificate.objects.create(
            student=enrollment.student,
            enrollment=enrollment,
            internship=enrollment.internship,
            final_score=enrollment.final_score or 0,
            completion_date=enrollment.completion_date,
            issued_by=issued_by,
        )
        certificate.certificate_file.name = generate_certificate_image(certificate)
        certificate.save(update_fields=["certificate_file"])

    student = enrollment.student
    create_notification(
        title="Certificate Issued",
        message=(
            f"Congratulations! Your certificate for {enrollment.internship.title} is now available. "
            f"Certificate Number: {certificate.certificate_number}."
        ),
        notification_type='SUCCESS',
        priority='HIGH',
        user=student,
        link='/certificates',
    )
    notify_admins(
        title="Certificate Issued",
        message=f"{certificate.certificate_number} issued to {student.email} for {enrollment.internship.title}",
        priority='LOW',
    )
    send_certificate_email(certificate)

    logger.info(f"Certificate {certificate.certificate_number} issued for enrollment {enrollment.id}")
    return certificate


def revoke_certificate(certificate, reason=""):
    certificate.is_revoked = True
    certificate.revoked_reason = reason
    certificate.revoked_at = timezone.now()
    certificate.save(update_fields=["is_revoked", "revoked_reason", "revoked_at"])

    create_notification(
        title="Certificate Revoked",
        message=f"Certificate {certificate.certificate_number} has been revoked. {reason}".strip(),
        notification_type='WARNING',
        priority='HIGH',
        user=certificate.student,
    )
    return certificate

import os
import logging
from decimal import Decimal

from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib import colors
from django.conf import settings
from django.utils import timezone

from .models import PaymentReceipt

logger = logging.getLogger(__name__)


def receipt_number_for(payment):
    stamp = (payment.verified_at or timezone.now()).strftime("%Y%m%d")
    return f"RCP-{stamp}-{payment.id:06d}"


def generate_receipt_pdf(payment):
    """Render the receipt PDF for a verified payment and record it"""
    receipt_number = receipt_number_for(payment)
    receipt_dir = os.path.join(settings.MEDIA_ROOT, "receipts")
    os.makedirs(receipt_dir, exist_ok=True)
    file_path = os.path.join(receipt_dir, f"{receipt_number}.pdf")
    relative_path = f"receipts/{receipt_number}.pdf"

    # -----------------------------
    # Styles
    # -----------------------------
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("title", parent=styles["Heading1"], fontSize=24, fontName="Helvetica-Bold",
                                 textColor=colors.HexColor("#1a56db"), spaceAfter=5)
    section_header_style = ParagraphStyle("section_header", parent=styles["Heading2"], fontSize=12,
                                          textColor=colors.black, fontName="Helvetica-Bold",
                                          spaceBefore=12, spaceAfter=8)
    label_style = ParagraphStyle("label", parent=styles["Normal"], fontName="Helvetica", fontSize=11,
                                 textColor=colors.black, spaceAfter=4)
    footer_style = ParagraphStyle("footer", parent=styles["Normal"], alignment=1, fontName="Helvetica",
                                  fontSize=10, textColor=colors.black, spaceBefore=25)

    doc = SimpleDocTemplate(
        file_path,
        pagesize=A4,
        rightMargin=60,
        leftMargin=60,
        topMargin=60,
        bottomMargin=60,
    )

    elements = []
    elements.append(Paragraph(f"<b>{settings.ORGANIZATION_NAME}</b>", title_style))
    elements.append(Paragraph("<b>OFFICIAL PAYMENT RECEIPT</b>", section_header_style))
    elements.append(Paragraph(
        "This document confirms that the certificate fee below has been received. "
        "Please keep this receipt for your records.", label_style
    ))
    elements.append(Spacer(1, 12))

    # -----------------------------
    # Payment details
    # -----------------------------
    enrollment = payment.enrollment
    reference = payment.razorpay_payment_id or payment.transaction_id or payment.razorpay_order_id or "N/A"
    data = [
        ["Receipt Number:", receipt_number],
        ["Student Name:", payment.student.name or payment.student.email],
        ["Student ID:", payment.student.user_code or "N/A"],
        ["Internship:", enrollment.internship.title],
        ["Payment Method:", payment.get_method_display()],
        ["Payment Reference:", reference],
        ["Amount Paid:", f"INR {Decimal(payment.amount):,.2f}"],
        ["Payment Status:", payment.get_status_display()],
        ["Date & Time:", timezone.localtime(payment.verified_at or timezone.now()).strftime("%d/%m/%Y, %H:%M:%S")],
    ]

    table = Table(data, colWidths=[180, 300], hAlign='CENTER')
    table.setStyle(TableStyle([
        ("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
        ("BOX", (0, 0), (-1, -1), 0.75, colors.HexColor("#AAAAAA")),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#DDDDDD")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LEFTPADDING", (0, 0), (-1, -1), 12),
        ("RIGHTPADDING", (0, 0), (-1, -1), 12),
        ("TOPPADDING", (0, 0), (-1, -1), 8),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTNAME", (1, 0), (1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 11),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 25))

    elements.append(Paragraph(
        "Thank you for completing your internship with us. "
        "Your certificate is available for download from your dashboard.",
        label_style
    ))

    # -----------------------------
    # Footer
    # -----------------------------
    elements.append(HRFlowable(width="80%", thickness=0.5, color=colors.HexColor("#DDDDDD"),
                               spaceBefore=12, spaceAfter=12))
    elements.append(Paragraph(f"<b>{settings.ORGANIZATION_NAME}</b><br/>{settings.FRONTEND_URL}", footer_style))

    doc.build(elements)

    PaymentReceipt.objects.update_or_create(
        payment=payment,
        defaults={"receipt_number": receipt_number, "pdf_file": relative_path},
    )

    logger.info(f"Receipt {receipt_number} generated for payment {payment.id}")
    return relative_path

import logging

from django.db.models import Avg, Count, Q
from django.http import FileResponse
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from admin_panel.permissions import IsStaffOrSuperAdmin
from admin_panel.utils import log_admin_activity, get_client_ip
from internships.models import Enrollment
from .models import Certificate
from .serializers import CertificateSerializer, RevokeCertificateSerializer
from .utils import issue_certificate, revoke_certificate, send_certificate_email

logger = logging.getLogger(__name__)


def _is_staff(request):
    return IsStaffOrSuperAdmin().has_permission(request, None)


class CertificateViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = CertificateSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["is_revoked", "internship"]
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action in ["revoke", "statistics", "bulk_generate"]:
            return [IsAuthenticated(), IsStaffOrSuperAdmin()]
        return [IsAuthenticated()]

    def get_queryset(self):
        queryset = Certificate.objects.select_related("student", "internship", "issued_by")
        if not _is_staff(self.request):
            queryset = queryset.filter(student=self.request.user)
        return queryset

    @action(detail=False, methods=["get"])
    def my(self, request):
        certificates = Certificate.objects.filter(student=request.user).select_related("internship", "student")
        serializer = self.get_serializer(certificates, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=["get"])
    def download(self, request, pk=None):
        certificate = self.get_object()
        if certificate.is_revoked:
            return Response({"error": "This certificate has been revoked"}, status=status.HTTP_403_FORBIDDEN)
        if not certificate.certificate_file:
            return Response({"error": "Certificate file not available"}, status=status.HTTP_404_NOT_FOUND)

        try:
            handle = certificate.certificate_file.open("rb")
        except FileNotFoundError:
            logger.error(f"Certificate file missing on disk for {certificate.certificate_number}")
            return Response({"error": "Certificate file not available"}, status=status.HTTP_404_NOT_FOUND)

        return FileResponse(
            handle,
            as_attachment=True,
            filename=f"{certificate.certificate_number}.png",
        )

    @action(detail=True, methods=["post"])
    def revoke(self, request, pk=None):
        certificate = self.get_object()
        if certificate.is_revoked:
            return Response({"error": "Certificate is already revoked"}, status=status.HTTP_400_BAD_REQUEST)

        serializer = RevokeCertificateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        revoke_certificate(certificate, serializer.validated_data["reason"])

        log_admin_activity(
            admin=request.user,
            action='UPDATE',
            model_name='Certificate',
            object_id=certificate.id,
            description=f"Revoked certificate {certificate.certificate_number}",
            ip_address=get_client_ip(request)
        )
        return Response({
            "message": "Certificate revoked successfully",
            "certificate": self.get_serializer(certificate).data,
        })

    @action(detail=True, methods=["post"])
    def resend(self, request, pk=None):
        certificate = self.get_object()
        if certificate.is_revoked:
            return Response({"error": "This certificate has been revoked"}, status=status.HTTP_400_BAD_REQUEST)
        if not send_certificate_email(certificate):
            return Response(
                {"error": "Failed to send certificate email"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response({"message": f"Certificate email sent to {certificate.student.email}"})

    @action(detail=False, methods=["post"], url_path="bulk-generate")
    def bulk_generate(self, request):
        """Issue certificates for every finished, paid enrollment still waiting for one"""
        enrollments = Enrollment.objects.select_related("student", "internship").filter(
            is_completed=True, certificate_eligible=True, certificate_purchased=True, certificate__isnull=True
        )
        internship_id = request.data.get("internship_id")
        if internship_id:
            enrollments = enrollments.filter(internship_id=internship_id)

        generated, failed = [], []
        for enrollment in enrollments:
            try:
                certificate = issue_certificate(enrollment, issued_by=request.user)
            except ValueError as e:
                logger.error(f"Bulk certificate generation failed for enrollment {enrollment.id}: {e}")
                failed.append({"enrollment_id": enrollment.id, "error": str(e)})
                continue
            generated.append({
                "enrollment_id": enrollment.id,
                "certificate_number": certificate.certificate_number,
                "student_email": enrollment.student.email,
            })

        if generated:
            log_admin_activity(
                admin=request.user,
                action='CREATE',
                model_name='Certificate',
                description=f"Bulk generated {len(generated)} certificate(s)",
                ip_address=get_client_ip(request)
            )
        return Response({
            "message": f"Generated {len(generated)} certificate(s)",
            "generated": generated,
            "failed": failed,
        })

    @action(detail=False, methods=["get"])
    def statistics(self, request):
        totals = Certificate.objects.aggregate(
            total=Count("id"),
            revoked=Count("id", filter=Q(is_revoked=True)),
            average_score=Avg("final_score", filter=Q(is_revoked=False)),
        )
        totals["active"] = totals["total"] - totals["revoked"]
        totals["average_score"] = round(totals["average_score"] or 0, 2)
        totals["awaiting_payment"] = Enrollment.objects.filter(
            is_completed=True, certificate_eligible=True, certificate_purchased=False
        ).count()
        totals["by_internship"] = list(
            Certificate.objects.filter(is_revoked=False)
            .values("internship__id", "internship__title")
            .annotate(count=Count("id"), average_score=Avg("final_score"))
            .order_by("-count")
        )
        return Response(totals)


@api_view(["POST"])
@permission_classes([IsAuthenticated, IsStaffOrSuperAdmin])
def generate_certificate(request, enrollment_id):
    """Manually issue a certificate for an enrollment"""
    enrollment = get_object_or_404(Enrollment.objects.select_related("student", "internship"), pk=enrollment_id)
    already_issued = Certificate.objects.filter(enrollment=enrollment).exists()

    try:
        certificate = issue_certificate(enrollment, issued_by=request.user)
    except ValueError as e:
        return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    if not already_issued:
        log_admin_activity(
            admin=request.user,
            action='CREATE',
            model_name='Certificate',
            object_id=certificate.id,
            description=f"Issued certificate {certificate.certificate_number} to {enrollment.student.email}",
            ip_address=get_client_ip(request)
        )

    return Response(
        {
            "message": "Certificate already issued" if already_issued else "Certificate generated successfully",
            "certificate": CertificateSerializer(certificate, context={"request": request}).data,
        },
        status=status.HTTP_200_OK if already_issued else status.HTTP_201_CREATED
    )


@api_view(["GET"])
@permission_classes([AllowAny])
def verify_certificate(request, certificate_number):
    """Public authenticity check"""
    certificate = Certificate.objects.select_related("student", "internship").filter(
        certificate_number=certificate_number
    ).first()
    if certificate is None:
        return Response(
            {"valid": False, "message": "Certificate not found or invalid"},
            status=status.HTTP_404_NOT_FOUND
        )

    return Response({
        "valid": not certificate.is_revoked,
        "message": "Certificate has been revoked" if certificate.is_revoked else "Certificate is valid",
        "certificate": {
            "certificate_number": certificate.certificate_number,
            "student_name": certificate.student.name or certificate.student.username,
            "internship_title": certificate.internship.title,
            "duration_days": certificate.internship.duration_days,
            "final_score": certificate.final_score,
            "completion_date": certificate.completion_date,
            "issued_at": certificate.issued_at,
            "revoked_at": certificate.revoked_at,
        },
    })

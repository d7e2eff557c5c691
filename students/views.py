import logging

from django.contrib.auth import get_user_model, logout
from django.contrib.auth.signals import user_logged_in
from django.db.models import Q
from rest_framework import viewsets, status
from rest_framework.authtoken.models import Token
from rest_framework.authtoken.views import ObtainAuthToken
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from admin_panel.permissions import IsStaffOrSuperAdmin, IsSuperAdmin
from admin_panel.utils import log_admin_activity, get_client_ip
from .models import EmailOTP, CustomUser
from .serializers import (
    UserRegistrationSerializer, UserProfileSerializer, SendPasswordResetOTPSerializer,
    ResetPasswordSerializer, AdminUserSerializer, EmailAuthTokenSerializer
)
from .utils import send_otp_email, send_welcome_email

logger = logging.getLogger(__name__)

User = get_user_model()


class RegisterView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'auth'

    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        token, _ = Token.objects.get_or_create(user=user)
        send_welcome_email(user)
        logger.info(f"Registered student {user.email} ({user.user_code})")

        return Response(
            {
                "message": "Registration successful.",
                "token": token.key,
                "user": UserProfileSerializer(user).data,
            },
            status=status.HTTP_201_CREATED
        )


class CustomAuthToken(ObtainAuthToken):
    serializer_class = EmailAuthTokenSerializer
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'auth'

    def post(self, request, *args, **kwargs):
        serializer = self.serializer_class(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data['user']
        if not user.is_active:
            return Response(
                {'error': 'Your account has been deactivated. Please contact admin.'},
                status=status.HTTP_403_FORBIDDEN
            )
        token, _ = Token.objects.get_or_create(user=user)
        user_logged_in.send(sender=user.__class__, request=request, user=user)
        return Response({
            'token': token.key,
            'user': UserProfileSerializer(user).data,
        })


class UserProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = UserProfileSerializer(request.user)
        return Response(serializer.data)

    def put(self, request):
        """Allow authenticated users to update their own profile"""
        serializer = UserProfileSerializer(request.user, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_200_OK)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    patch = put


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        Token.objects.filter(user=request.user).delete()
        logout(request)
        return Response({"message": "Logged out successfully"})


class SendPasswordResetOTPView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'auth'

    def post(self, request):
        serializer = SendPasswordResetOTPSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data['email']

        try:
            user = CustomUser.objects.get(email__iexact=email)
        except CustomUser.DoesNotExist:
            return Response({"error": "User not found"}, status=status.HTTP_404_NOT_FOUND)

        EmailOTP.clean_expired_otps()
        otp = EmailOTP.generate_otp(user, purpose=EmailOTP.PURPOSE_PASSWORD_RESET)
        send_otp_email(user, otp)

        return Response({"message": "Password reset OTP sent to your email."})


class ResetPasswordView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'auth'

    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data['email']
        code = serializer.validated_data['otp']

        otp_record = EmailOTP.objects.filter(
            user__email__iexact=email,
            purpose=EmailOTP.PURPOSE_PASSWORD_RESET,
            is_used=False,
        ).order_by('-created_at').first()

        if otp_record is None:
            return Response({"error": "Invalid or expired OTP."}, status=status.HTTP_400_BAD_REQUEST)

        if otp_record.is_expired():
            otp_record.mark_as_used()
            return Response({"error": "OTP expired."}, status=status.HTTP_400_BAD_REQUEST)

        if otp_record.code != code:
            otp_record.increment_attempt()
            remaining = max(0, otp_record.max_attempts - otp_record.attempts)
            return Response(
                {"error": "Invalid OTP.", "attempts_remaining": remaining},
                status=status.HTTP_400_BAD_REQUEST
            )

        user = otp_record.user
        user.set_password(serializer.validated_data['new_password'])
        user.save()
        otp_record.mark_as_used()
        Token.objects.filter(user=user).delete()

        return Response({"message": "Password reset successful."}, status=status.HTTP_200_OK)


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """Staff view of every account, plus promotion/demotion of staff"""
    serializer_class = AdminUserSerializer
    permission_classes = [IsAuthenticated, IsStaffOrSuperAdmin]

    def get_queryset(self):
        queryset = CustomUser.objects.all().order_by('email')
        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(email__icontains=search) | Q(user_code__icontains=search)
            )
        role = self.request.query_params.get('role')
        if role == CustomUser.ROLE_STUDENT:
            queryset = queryset.filter(is_staff=False, is_staff_admin=False, is_superadmin=False)
        elif role == CustomUser.ROLE_ADMIN:
            queryset = queryset.filter(Q(is_staff=True) | Q(is_staff_admin=True) | Q(is_superadmin=True))
        return queryset

    @action(detail=False, methods=['get'])
    def staff_list(self, request):
        staff = CustomUser.objects.filter(is_staff_admin=True)
        serializer = self.get_serializer(staff, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsSuperAdmin])
    def toggle_staff_role(self, request, pk=None):
        user = self.get_object()
        if user == request.user:
            return Response({"error": "You cannot change your own role."}, status=status.HTTP_400_BAD_REQUEST)

        user.is_staff_admin = not user.is_staff_admin
        user.is_staff = user.is_staff_admin
        user.save(update_fields=['is_staff_admin', 'is_staff'])

        log_admin_activity(
            admin=request.user,
            action='UPDATE',
            model_name='User',
            object_id=user.id,
            description=f"{'Promoted' if user.is_staff_admin else 'Demoted'} {user.email}",
            ip_address=get_client_ip(request)
        )
        return Response({
            "message": f"User {'promoted' if user.is_staff_admin else 'demoted'} successfully.",
            "is_staff_admin": user.is_staff_admin,
        })

import re

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import CustomUser

User = get_user_model()

NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


# -------------------------------
# USER REGISTRATION SERIALIZER
# -------------------------------
class UserRegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6, max_length=128)
    name = serializers.CharField(min_length=2, max_length=50)
    email = serializers.EmailField(max_length=255)
    phone_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = CustomUser
        fields = ["id", "name", "email", "phone_number", "password", "user_code", "registration_date"]
        read_only_fields = ["id", "user_code", "registration_date"]

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Name must be at least 2 characters.")
        if not NAME_PATTERN.match(value):
            raise serializers.ValidationError(
                "Name can only contain letters, spaces, hyphens, and apostrophes."
            )
        return value

    def validate_email(self, value):
        value = value.strip().lower()
        if CustomUser.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("User with this email already exists.")
        return value

    def validate_phone_number(self, value):
        if not value:
            return None
        cleaned = re.sub(r"[\s-]", "", value)
        if not PHONE_PATTERN.match(cleaned):
            raise serializers.ValidationError("Phone number must be 10 to 15 digits.")
        return cleaned

    def create(self, validated_data):
        return CustomUser.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            name=validated_data['name'],
            phone_number=validated_data.get('phone_number'),
        )


# -------------------------------
# USER PROFILE SERIALIZER
# -------------------------------
class UserProfileSerializer(serializers.ModelSerializer):
    role = serializers.CharField(read_only=True)

    class Meta:
        model = CustomUser
        fields = [
            'id',
            'email',
            'username',
            'name',
            'phone_number',
            'user_code',
            'role',
            'is_active',
            'is_staff',
            'is_staff_admin',
            'is_superadmin',
            'registration_date',
        ]
        read_only_fields = [
            'id', 'email', 'user_code', 'role', 'is_active', 'is_staff',
            'is_staff_admin', 'is_superadmin', 'registration_date',
        ]

    def validate_name(self, value):
        value = (value or '').strip()
        if not 2 <= len(value) <= 50 or not NAME_PATTERN.match(value):
            raise serializers.ValidationError(
                "Name must be 2-50 characters of letters, spaces, hyphens, and apostrophes."
            )
        return value

    def validate_phone_number(self, value):
        if not value:
            return None
        cleaned = re.sub(r"[\s-]", "", value)
        if not PHONE_PATTERN.match(cleaned):
            raise serializers.ValidationError("Phone number must be 10 to 15 digits.")
        return cleaned


class AdminUserSerializer(serializers.ModelSerializer):
    role = serializers.CharField(read_only=True)
    enrollment_count = serializers.SerializerMethodField()

    class Meta:
        model = CustomUser
        fields = [
            'id', 'email', 'username', 'name', 'phone_number', 'user_code', 'role',
            'is_active', 'is_staff_admin', 'is_superadmin', 'registration_date',
            'enrollment_count',
        ]

    def get_enrollment_count(self, obj):
        return obj.enrollments.count()


class EmailAuthTokenSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        email = attrs.get("email", "").strip().lower()
        password = attrs.get("password")
        try:
            user_obj = User.objects.get(email__iexact=email)
        except User.DoesNotExist:
            raise serializers.ValidationError("Invalid email or password")

        if not user_obj.check_password(password):
            raise serializers.ValidationError("Invalid email or password")

        # Inactive users get through here; the login view answers them with 403
        attrs['user'] = user_obj
        return attrs


class SendPasswordResetOTPSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.CharField(min_length=6, max_length=6)
    new_password = serializers.CharField(min_length=6, max_length=128)

    def validate_otp(self, value):
        if not value.isdigit():
            raise serializers.ValidationError("OTP must be numeric.")
        return value

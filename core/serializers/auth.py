import bleach
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from core.models import DEFAULT_NOTIFICATION_PREFERENCES, User


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Username is required')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=[User.ROLE_ADMIN, User.ROLE_DOCTOR], required=False, default=User.ROLE_DOCTOR)
    firstName = serializers.CharField(required=False, allow_blank=True, max_length=150, default='')
    lastName = serializers.CharField(required=False, allow_blank=True, max_length=150, default='')
    doctorId = serializers.CharField(required=False, allow_blank=True, max_length=50, default='')
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')

    def validate_username(self, v):
        return bleach.clean(v.strip(), strip=True)

    def validate(self, attrs):
        if User.objects.filter(username=attrs['username']).exists() or \
                User.objects.filter(email__iexact=attrs['email']).exists():
            raise serializers.ValidationError('User already exists')
        if attrs.get('role') == User.ROLE_DOCTOR:
            if not attrs.get('doctorId'):
                raise serializers.ValidationError({'doctorId': 'Doctor ID is required for doctor registration'})
            if User.objects.filter(doctor_id=attrs['doctorId']).exists():
                raise serializers.ValidationError({'doctorId': 'Doctor ID already in use'})
        try:
            validate_password(attrs['password'])
        except DjangoValidationError as e:
            raise serializers.ValidationError({'password': e.messages})
        return attrs


class UpdateProfileSerializer(serializers.Serializer):
    firstName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    lastName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    email = serializers.EmailField(required=False)
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_email(self, v):
        user = self.context['request'].user
        if User.objects.filter(email__iexact=v).exclude(pk=user.pk).exists():
            raise serializers.ValidationError('Email is already in use')
        return v


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField()
    newPassword = serializers.CharField(min_length=8)


class NotificationPreferencesSerializer(serializers.Serializer):
    emailNotifications = serializers.BooleanField(required=False)
    appointmentReminders = serializers.BooleanField(required=False)
    systemUpdates = serializers.BooleanField(required=False)
    marketingEmails = serializers.BooleanField(required=False)

    def validate(self, attrs):
        unknown = set(self.initial_data) - set(DEFAULT_NOTIFICATION_PREFERENCES)
        if unknown:
            raise serializers.ValidationError({k: 'unknown preference' for k in sorted(unknown)})
        return attrs

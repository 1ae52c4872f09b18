"""
Authentication and account settings views.

Login issues a JWT access/refresh pair plus a legacy DRF token so that
older clients sending ``Authorization: Token <key>`` keep working.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from django.db import transaction
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from core.models import DEFAULT_NOTIFICATION_PREFERENCES, User
from core.permissions import IsAdminRole
from core.serializers.auth import (
    ChangePasswordSerializer,
    LoginSerializer,
    NotificationPreferencesSerializer,
    RegisterSerializer,
    UpdateProfileSerializer,
)
from core.services.audit import client_ip, log_action
from core.throttles import LoginRateThrottle


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'firstName': user.first_name,
        'lastName': user.last_name,
        'name': user.display_name(),
        'role': user.role,
        'doctorId': user.doctor_id,
        'specialization': user.specialization,
    }


def _token_payload(user: User) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': serialize_user(user),
    }


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def register_view(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if vd['role'] == User.ROLE_ADMIN and not (request.user is not None and request.user.is_admin):
        raise PermissionDenied('Only administrators can create administrator accounts')
    with transaction.atomic():
        user = User.objects.create_user(
            username=vd['username'],
            email=vd['email'],
            password=vd['password'],
            first_name=vd['firstName'],
            last_name=vd['lastName'],
            role=vd['role'],
            doctor_id=vd['doctorId'] if vd['role'] == User.ROLE_DOCTOR else None,
            specialization=vd['specialization'] if vd['role'] == User.ROLE_DOCTOR else '',
        )
    log_action(user=user, action='register', object_type='user', object_id=user.id,
               detail={'ip': client_ip(request)})
    return Response(_token_payload(user), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """Username/password login."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    user = authenticate(request, username=username, password=s.validated_data['password'])
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': username, 'ip': client_ip(request)})
        raise AuthenticationFailed('Invalid credentials')
    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': client_ip(request)})
    return Response(_token_payload(user))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response(serialize_user(request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def doctors_view(request):
    qs = User.objects.filter(role=User.ROLE_DOCTOR, is_active=True).order_by('last_name', 'first_name')
    return Response([serialize_user(u) for u in qs])


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def update_profile_view(request):
    s = UpdateProfileSerializer(data=request.data, context={'request': request})
    s.is_valid(raise_exception=True)
    user: User = request.user
    for key, attr in (('firstName', 'first_name'), ('lastName', 'last_name'),
                      ('email', 'email'), ('specialization', 'specialization')):
        if key in s.validated_data:
            setattr(user, attr, s.validated_data[key])
    user.save()
    return Response({'message': 'Profile updated successfully', 'user': serialize_user(user)})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user: User = request.user
    if not user.check_password(s.validated_data['currentPassword']):
        raise AuthenticationFailed('Current password is incorrect')
    user.set_password(s.validated_data['newPassword'])
    user.save(update_fields=['password'])
    log_action(user=user, action='change_password', object_type='user', object_id=user.id,
               detail={'ip': client_ip(request)})
    return Response({'message': 'Password changed successfully'})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def notification_preferences_view(request):
    user: User = request.user
    current = {**DEFAULT_NOTIFICATION_PREFERENCES, **(user.notification_preferences or {})}
    if request.method == 'GET':
        return Response(current)
    s = NotificationPreferencesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    current.update(s.validated_data)
    user.notification_preferences = current
    user.save(update_fields=['notification_preferences'])
    return Response(current)


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Exchange a refresh token for a new access token."""
    resp = TokenRefreshView.as_view()(request._request)
    data = dict(resp.data)
    if 'access' in data:
        data['jwt_access'] = data.pop('access')
    if 'refresh' in data:
        data['jwt_refresh'] = data.pop('refresh')
    return Response(data, status=resp.status_code)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or every outstanding one for the user."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
        except TokenError as exc:
            raise ValidationError({'refresh': str(exc)})
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id)
    return Response({'ok': True, 'blacklisted': count})

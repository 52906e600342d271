"""Views for the Auth API."""

import logging

from django.contrib.auth import authenticate, login, logout, update_session_auth_hash
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.api.exceptions import first_error_message
from apps.api.mixins import AuditLogMixin
from apps.api.permissions import IsStudyUser
from apps.api.throttling import WriteRateThrottle
from apps.authentication.models import User, UserRole

from .serializers import (
    UserProfileSerializer,
    ProfileUpdateSerializer,
    ChangePasswordSerializer,
    RegisterSerializer,
    ForgotUsernameSerializer,
    ResetPasswordSerializer,
)

audit_logger = logging.getLogger('apps.authentication.audit')

MISSING_CREDENTIALS = '請輸入帳號和密碼'
BAD_CREDENTIALS = '帳號或密碼錯誤'
ACCOUNT_LOCKED = '登入失敗次數過多，帳號已暫時鎖定，請稍後再試'


def _invalid(serializer):
    return Response(
        {'detail': first_error_message(serializer.errors)},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _check_credentials(request, username, password):
    """Shared login check for session login and token issue.

    Returns (user, error_response); exactly one is None.
    """
    if not username or not password:
        return None, Response({'detail': MISSING_CREDENTIALS}, status=status.HTTP_400_BAD_REQUEST)

    account = User.objects.filter(username=username).first()
    if account is not None and account.is_account_locked():
        audit_logger.warning("Login attempt on locked account %s", username)
        return None, Response({'detail': ACCOUNT_LOCKED}, status=status.HTTP_423_LOCKED)

    user = authenticate(request=request, username=username, password=password)
    if user is None:
        if account is not None:
            account.increment_failed_login()
            if account.is_account_locked():
                audit_logger.warning("Account %s locked after repeated failures", username)
        audit_logger.info("Failed login for %s", username)
        return None, Response({'detail': BAD_CREDENTIALS}, status=status.HTTP_401_UNAUTHORIZED)

    if user.failed_login_attempts or user.account_locked_until:
        user.reset_failed_login()
    return user, None


class LoginView(AuditLogMixin, APIView):
    """
    POST /api/v1/auth/login/  Session login.

    Returns the user profile; the session cookie carries the login.
    """

    permission_classes = []
    throttle_classes = [WriteRateThrottle]

    def post(self, request):
        user, error = _check_credentials(
            request, request.data.get('username'), request.data.get('password'),
        )
        if error is not None:
            return error

        login(request, user)
        audit_logger.info("Login %s from %s", user.username, self.get_client_ip(request))
        return Response(UserProfileSerializer(user).data)


class LogoutView(APIView):
    """POST /api/v1/auth/logout/"""

    permission_classes = [IsStudyUser]

    def post(self, request):
        if isinstance(request.auth, Token):
            request.auth.delete()
        audit_logger.info("Logout %s", request.user.username)
        logout(request)
        return Response({'message': '已登出'})


class CurrentUserView(APIView):
    """
    GET   /api/v1/auth/me/  Current user profile
    PATCH /api/v1/auth/me/  Update profile fields
    """

    permission_classes = [IsStudyUser]

    def get(self, request):
        serializer = UserProfileSerializer(request.user)
        return Response(serializer.data)

    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        user = request.user
        updated_fields = []
        for field, value in serializer.validated_data.items():
            if field == 'security_answer':
                if value:
                    user.set_security_answer(value)
                    updated_fields.append('security_answer_hash')
                continue
            setattr(user, field, value)
            updated_fields.append(field)

        if updated_fields:
            user.save(update_fields=updated_fields)

        return Response(UserProfileSerializer(user).data)


class ChangePasswordView(APIView):
    """POST /api/v1/auth/change-password/"""

    permission_classes = [IsStudyUser]
    throttle_classes = [WriteRateThrottle]

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        user = request.user
        if not user.check_password(serializer.validated_data['current_password']):
            return Response({'detail': '目前密碼錯誤'}, status=status.HTTP_401_UNAUTHORIZED)

        user.set_password(serializer.validated_data['new_password'])
        user.save(update_fields=['password'])
        # Keep the current session valid after the hash changes
        if request.session.session_key:
            update_session_auth_hash(request, user)
        audit_logger.info("Password changed by %s", user.username)
        return Response({'message': '密碼已更新'})


class RegisterView(APIView):
    """POST /api/v1/auth/register/  Self-registration as a regular user."""

    permission_classes = []
    throttle_classes = [WriteRateThrottle]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        data = dict(serializer.validated_data)
        if User.objects.filter(username=data['username']).exists():
            return Response({'detail': '此帳號已存在'}, status=status.HTTP_409_CONFLICT)

        answer = data.pop('security_answer')
        password = data.pop('password')
        user = User(role=UserRole.USER, **data)
        user.set_password(password)
        user.set_security_answer(answer)
        user.save()

        audit_logger.info("Account %s registered (%s)", user.username, user.hospital)
        return Response(UserProfileSerializer(user).data, status=status.HTTP_201_CREATED)


class ForgotUsernameView(APIView):
    """POST /api/v1/auth/forgot-username/  Email + phone lookup."""

    permission_classes = []
    throttle_classes = [WriteRateThrottle]

    def post(self, request):
        serializer = ForgotUsernameSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        user = User.objects.filter(
            email__iexact=serializer.validated_data['email'],
            phone=serializer.validated_data['phone'].strip(),
        ).first()
        if user is None:
            return Response({'detail': '找不到符合的帳號'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'username': user.username})


class SecurityQuestionView(APIView):
    """GET /api/v1/auth/security-question/?username=  First step of a password reset."""

    permission_classes = []
    throttle_classes = [WriteRateThrottle]

    def get(self, request):
        username = request.query_params.get('username', '')
        user = User.objects.filter(username=username).first() if username else None
        if user is None or not user.security_question:
            return Response({'detail': '此帳號未設定安全問題'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'username': user.username, 'security_question': user.security_question})


class ResetPasswordView(APIView):
    """POST /api/v1/auth/reset-password/  Security-question password reset."""

    permission_classes = []
    throttle_classes = [WriteRateThrottle]

    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        data = serializer.validated_data
        user = User.objects.filter(username=data['username']).first()
        if user is None or not user.check_security_answer(data['security_answer']):
            audit_logger.info("Failed password reset for %s", data['username'])
            return Response({'detail': '帳號或安全問題答案錯誤'}, status=status.HTTP_400_BAD_REQUEST)

        user.set_password(data['new_password'])
        user.failed_login_attempts = 0
        user.account_locked_until = None
        user.save(update_fields=['password', 'failed_login_attempts', 'account_locked_until'])
        audit_logger.info("Password reset via security question for %s", user.username)
        return Response({'message': '密碼已重設'})


class ObtainTokenView(APIView):
    """
    POST /api/v1/auth/token/  Obtain or rotate API token.

    Expects username + password in request body.
    Deletes any existing token and issues a new one.
    """

    permission_classes = []  # Allow unauthenticated (login endpoint)
    throttle_classes = [WriteRateThrottle]

    def post(self, request):
        user, error = _check_credentials(
            request, request.data.get('username'), request.data.get('password'),
        )
        if error is not None:
            return error

        # Rotate: delete old token, create new one
        Token.objects.filter(user=user).delete()
        token = Token.objects.create(user=user)

        return Response({
            'token': token.key,
            'user_id': user.pk,
            'username': user.username,
            'role': user.role,
            'hospital': user.hospital,
        })

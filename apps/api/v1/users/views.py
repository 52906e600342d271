"""ViewSet for the user management API."""

import logging

from django.db.models import Count
from django.http import Http404
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from apps.api.exceptions import first_error_message
from apps.api.mixins import AuditLogMixin
from apps.api.permissions import CanManageUsers
from apps.api.throttling import WriteRateThrottle
from apps.authentication.models import User, UserRole

from .serializers import (
    ManagedUserSerializer,
    UserCreateSerializer,
    UserUpdateSerializer,
    PasswordResetSerializer,
)

audit_logger = logging.getLogger('apps.authentication.audit')


class UserViewSet(AuditLogMixin, viewsets.ModelViewSet):
    """
    User management API (administrators only).

    Administrator accounts are never listed, edited or deleted here.

    list:           GET    /api/v1/users/
    create:         POST   /api/v1/users/
    detail:         GET    /api/v1/users/{id}/
    update:         PUT/PATCH /api/v1/users/{id}/   (optional new_password)
    destroy:        DELETE /api/v1/users/{id}/
    reset_password: POST   /api/v1/users/{id}/reset-password/
    """

    serializer_class = ManagedUserSerializer
    permission_classes = [CanManageUsers]
    filterset_fields = ['hospital', 'is_active']

    def get_queryset(self):
        return (
            User.objects.filter(role=UserRole.USER, is_superuser=False)
            .annotate(submission_count=Count('submissions'))
            .order_by('hospital', 'username')
        )

    def get_object(self):
        try:
            return super().get_object()
        except Http404:
            if self.action == 'destroy':
                raise NotFound('找不到使用者或無法刪除管理員')
            raise NotFound('找不到使用者')

    def get_throttles(self):
        if self.request.method not in ('GET', 'HEAD', 'OPTIONS'):
            return [WriteRateThrottle()]
        return super().get_throttles()

    def _invalid(self, serializer):
        return Response(
            {'detail': first_error_message(serializer.errors)},
            status=status.HTTP_400_BAD_REQUEST,
        )

    def create(self, request):
        serializer = UserCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer)

        data = dict(serializer.validated_data)
        if User.objects.filter(username=data['username']).exists():
            return Response({'detail': '此帳號已存在'}, status=status.HTTP_409_CONFLICT)

        password = data.pop('password')
        user = User.objects.create_user(password=password, role=UserRole.USER, **data)
        audit_logger.info("Account %s created by %s", user.username, request.user.username)
        return Response(
            {'id': user.pk, 'message': '使用者已建立'},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, pk=None, partial=False):
        user = self.get_object()
        serializer = UserUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer)

        data = dict(serializer.validated_data)
        new_password = data.pop('new_password', None)
        for field, value in data.items():
            setattr(user, field, value)
        if new_password:
            user.set_password(new_password)
            user.failed_login_attempts = 0
            user.account_locked_until = None
            audit_logger.info("Password of %s changed by %s", user.username, request.user.username)
        user.save()

        user.submission_count = user.submissions.count()
        return Response(ManagedUserSerializer(user).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk, partial=True)

    def destroy(self, request, pk=None):
        user = self.get_object()
        username = user.username
        user.delete()
        audit_logger.info("Account %s deleted by %s", username, request.user.username)
        return Response({'message': '使用者已刪除'})

    @action(detail=True, methods=['post'], url_path='reset-password',
            serializer_class=PasswordResetSerializer)
    def reset_password(self, request, pk=None):
        user = self.get_object()
        serializer = PasswordResetSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer)

        user.set_password(serializer.validated_data['new_password'])
        user.failed_login_attempts = 0
        user.account_locked_until = None
        user.save(update_fields=['password', 'failed_login_attempts', 'account_locked_until'])
        self.log_action(request, 'reset password of', user.username)
        return Response({'message': '密碼已重設'})

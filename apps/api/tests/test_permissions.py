"""Tests for MHAR-BSI API permission classes."""

from django.contrib.auth.models import AnonymousUser
from django.test import TestCase
from rest_framework.test import APIRequestFactory

from apps.authentication.models import User, UserRole, Hospital
from apps.case_reports.models import Submission
from apps.api.permissions import (
    IsStudyUser,
    CanManageUsers,
    CanReviewDeleteRequests,
    CanEditGuide,
    IsSubmissionOwnerOrAdmin,
)


class PermissionTestBase(TestCase):
    """Base class with user fixtures for both roles."""

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username='nurse', password='testpass123', hospital=Hospital.SONGSHAN,
        )
        cls.other = User.objects.create_user(
            username='other', password='testpass123', hospital=Hospital.SONGSHAN,
        )
        cls.admin = User.objects.create_user(
            username='boss', password='testpass123', hospital=Hospital.NEIHU,
            role=UserRole.ADMIN,
        )
        cls.superuser = User.objects.create_superuser(username='root', password='testpass123')
        cls.factory = APIRequestFactory()

    def _make_request(self, user=None):
        request = self.factory.get('/api/v1/test/')
        request.user = user if user is not None else AnonymousUser()
        return request


class IsStudyUserTests(PermissionTestBase):

    def test_allows_both_roles(self):
        perm = IsStudyUser()
        self.assertTrue(perm.has_permission(self._make_request(self.user), None))
        self.assertTrue(perm.has_permission(self._make_request(self.admin), None))

    def test_denies_anonymous(self):
        perm = IsStudyUser()
        self.assertFalse(perm.has_permission(self._make_request(), None))


class AdminOnlyPermissionTests(PermissionTestBase):
    """User management, delete review and guide editing are admin-only."""

    classes = (CanManageUsers, CanReviewDeleteRequests, CanEditGuide)

    def test_allows_admin_and_superuser(self):
        for cls in self.classes:
            perm = cls()
            self.assertTrue(perm.has_permission(self._make_request(self.admin), None))
            self.assertTrue(perm.has_permission(self._make_request(self.superuser), None))

    def test_denies_user(self):
        for cls in self.classes:
            self.assertFalse(cls().has_permission(self._make_request(self.user), None))

    def test_denies_anonymous(self):
        for cls in self.classes:
            self.assertFalse(cls().has_permission(self._make_request(), None))

    def test_message(self):
        for cls in self.classes:
            self.assertEqual(cls.message, '權限不足')


class IsSubmissionOwnerOrAdminTests(PermissionTestBase):

    def setUp(self):
        self.submission = Submission.objects.create(
            user=self.user, medical_record_number='M1', admission_date='2026-01-01',
        )

    def test_owner(self):
        perm = IsSubmissionOwnerOrAdmin()
        self.assertTrue(perm.has_object_permission(
            self._make_request(self.user), None, self.submission,
        ))

    def test_other_user_same_hospital(self):
        perm = IsSubmissionOwnerOrAdmin()
        self.assertFalse(perm.has_object_permission(
            self._make_request(self.other), None, self.submission,
        ))

    def test_admin(self):
        perm = IsSubmissionOwnerOrAdmin()
        self.assertTrue(perm.has_object_permission(
            self._make_request(self.admin), None, self.submission,
        ))

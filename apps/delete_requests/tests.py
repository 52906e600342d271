"""
Tests for the delete request workflow.

Tests cover:
- DeleteRequestStatus enum
- DeleteRequest model snapshot fields and SET_NULL behaviour
- DeleteRequestService create / approve / reject / discard / purge
- purge_resolved_delete_requests Celery task and management command
"""

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.authentication.models import User, UserRole, Hospital
from apps.case_reports.exceptions import DeleteRequestAlreadyResolved, DeleteRequestConflict
from apps.case_reports.models import Submission

from .models import DeleteRequest, DeleteRequestStatus
from .services import DeleteRequestService, SubmissionMissing
from .tasks import purge_resolved_delete_requests


class DeleteRequestStatusEnumTests(TestCase):

    def test_values(self):
        self.assertEqual(DeleteRequestStatus.PENDING, 'pending')
        self.assertEqual(DeleteRequestStatus.APPROVED, 'approved')
        self.assertEqual(DeleteRequestStatus.REJECTED, 'rejected')
        self.assertEqual(len(DeleteRequestStatus.choices), 3)


class DeleteRequestTestBase(TestCase):

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

    def setUp(self):
        self.service = DeleteRequestService()
        self.submission = Submission.objects.create(
            user=self.user,
            medical_record_number='MRN-1',
            admission_date='2026-01-01',
            form_data={'record_time': '2026-01-03 09:30', 'pathogen': 'CRAB'},
        )

    def _resolved(self, status, days_ago):
        req = DeleteRequest.objects.create(
            requester=self.user,
            medical_record_number='OLD',
            admission_date='2025-01-01',
            status=status,
            resolved_by=self.admin,
        )
        DeleteRequest.objects.filter(pk=req.pk).update(
            resolved_at=timezone.now() - timedelta(days=days_ago),
        )
        return req


class DeleteRequestServiceTests(DeleteRequestTestBase):

    def test_create_snapshots_submission(self):
        req = self.service.create(self.user, self.submission, '重複輸入')
        self.assertEqual(req.status, DeleteRequestStatus.PENDING)
        self.assertEqual(req.medical_record_number, 'MRN-1')
        self.assertEqual(req.admission_date, '2026-01-01')
        self.assertEqual(req.record_time, '2026-01-03 09:30')
        self.assertEqual(req.request_reason, '重複輸入')
        self.assertEqual(req.requester, self.user)

    def test_second_pending_request_conflicts(self):
        self.service.create(self.user, self.submission)
        with self.assertRaises(DeleteRequestConflict) as ctx:
            self.service.create(self.user, self.submission)
        self.assertEqual(ctx.exception.message, '此筆資料已有待審核的刪除申請')

    def test_new_request_allowed_after_rejection(self):
        req = self.service.create(self.user, self.submission)
        self.service.reject(req, self.admin, '資料正確')
        self.service.create(self.user, self.submission)
        self.assertEqual(DeleteRequest.objects.count(), 2)

    def test_approve_deletes_submission_and_keeps_request(self):
        req = self.service.create(self.user, self.submission)
        self.service.approve(req, self.admin)
        self.assertFalse(Submission.objects.filter(pk=self.submission.pk).exists())
        req.refresh_from_db()
        self.assertEqual(req.status, DeleteRequestStatus.APPROVED)
        self.assertEqual(req.resolved_by, self.admin)
        self.assertIsNotNone(req.resolved_at)
        self.assertIsNone(req.submission)
        self.assertEqual(req.medical_record_number, 'MRN-1')

    def test_approve_twice_fails(self):
        req = self.service.create(self.user, self.submission)
        self.service.approve(req, self.admin)
        with self.assertRaises(DeleteRequestAlreadyResolved):
            self.service.approve(req, self.admin)

    def test_approve_when_submission_already_gone(self):
        req = self.service.create(self.user, self.submission)
        self.submission.delete()
        req.refresh_from_db()
        with self.assertRaises(SubmissionMissing):
            self.service.approve(req, self.admin)

    def test_reject_records_reason(self):
        req = self.service.create(self.user, self.submission)
        self.service.reject(req, self.admin, '資料無誤')
        req.refresh_from_db()
        self.assertEqual(req.status, DeleteRequestStatus.REJECTED)
        self.assertEqual(req.reject_reason, '資料無誤')
        self.assertTrue(Submission.objects.filter(pk=self.submission.pk).exists())

    def test_reject_resolved_fails(self):
        req = self.service.create(self.user, self.submission)
        self.service.reject(req, self.admin)
        with self.assertRaises(DeleteRequestAlreadyResolved):
            self.service.reject(req, self.admin)

    def test_discard_resolved(self):
        req = self.service.create(self.user, self.submission)
        self.service.reject(req, self.admin)
        self.service.discard(req)
        self.assertEqual(DeleteRequest.objects.count(), 0)

    def test_discard_pending_fails(self):
        req = self.service.create(self.user, self.submission)
        with self.assertRaises(DeleteRequestConflict) as ctx:
            self.service.discard(req)
        self.assertEqual(ctx.exception.message, '待審核的申請不能刪除')

    def test_visible_to(self):
        self.service.create(self.user, self.submission)
        self.assertEqual(self.service.visible_to(self.user).count(), 1)
        self.assertEqual(self.service.visible_to(self.other).count(), 0)
        self.assertEqual(self.service.visible_to(self.admin).count(), 1)

    def test_pending_count(self):
        self.assertEqual(self.service.pending_count(), 0)
        self.service.create(self.user, self.submission)
        self.assertEqual(self.service.pending_count(), 1)


class PurgeTests(DeleteRequestTestBase):

    def test_purge_removes_only_old_resolved(self):
        old = self._resolved(DeleteRequestStatus.APPROVED, days_ago=400)
        recent = self._resolved(DeleteRequestStatus.REJECTED, days_ago=10)
        pending = self.service.create(self.user, self.submission)

        deleted = self.service.purge_resolved(days=365)
        self.assertEqual(deleted, 1)
        remaining = set(DeleteRequest.objects.values_list('pk', flat=True))
        self.assertEqual(remaining, {recent.pk, pending.pk})
        self.assertNotIn(old.pk, remaining)

    def test_resolved_before_matches_purge(self):
        old = self._resolved(DeleteRequestStatus.REJECTED, days_ago=400)
        self._resolved(DeleteRequestStatus.APPROVED, days_ago=10)
        self.service.create(self.user, self.submission)

        self.assertEqual(list(self.service.resolved_before(365)), [old])
        self.assertEqual(self.service.purge_resolved(days=365), 1)
        self.assertFalse(self.service.resolved_before(365).exists())

    @override_settings(MHAR_BSI={'DELETE_REQUEST_RETENTION_DAYS': 5})
    def test_resolved_before_uses_configured_retention(self):
        self._resolved(DeleteRequestStatus.REJECTED, days_ago=10)
        self.assertEqual(self.service.retention_days(), 5)
        self.assertEqual(self.service.resolved_before().count(), 1)

    @override_settings(MHAR_BSI={'DELETE_REQUEST_RETENTION_DAYS': 5})
    def test_retention_from_settings(self):
        self._resolved(DeleteRequestStatus.REJECTED, days_ago=10)
        self.assertEqual(self.service.purge_resolved(), 1)

    def test_celery_task(self):
        self._resolved(DeleteRequestStatus.APPROVED, days_ago=400)
        result = purge_resolved_delete_requests.delay(days=365)
        self.assertEqual(result.get(), {'deleted': 1})

    def test_management_command(self):
        self._resolved(DeleteRequestStatus.APPROVED, days_ago=400)
        out = StringIO()
        call_command('purge_delete_requests', '--days', '365', '--dry-run', stdout=out)
        self.assertIn('1 resolved delete requests', out.getvalue())
        self.assertEqual(DeleteRequest.objects.count(), 1)

        out = StringIO()
        call_command('purge_delete_requests', '--days', '365', stdout=out)
        self.assertIn('Removed 1', out.getvalue())
        self.assertEqual(DeleteRequest.objects.count(), 0)

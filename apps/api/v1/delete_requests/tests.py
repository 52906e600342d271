"""Tests for the delete request API."""

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, UserRole, Hospital
from apps.case_reports.models import Submission
from apps.delete_requests.models import DeleteRequest, DeleteRequestStatus


class DeleteRequestAPITestBase(TestCase):
    """Base class with user fixtures and helper methods."""

    @classmethod
    def setUpTestData(cls):
        cls.nurse = User.objects.create_user(
            username='nurse', password='testpass123', hospital=Hospital.SONGSHAN,
        )
        cls.other = User.objects.create_user(
            username='other', password='testpass123', hospital=Hospital.ZUOYING,
        )
        cls.admin = User.objects.create_user(
            username='boss', password='testpass123', hospital=Hospital.NEIHU,
            role=UserRole.ADMIN,
        )
        cls.nurse_token = Token.objects.create(user=cls.nurse)
        cls.other_token = Token.objects.create(user=cls.other)
        cls.admin_token = Token.objects.create(user=cls.admin)

    def setUp(self):
        self.client = APIClient()
        self.submission = Submission.objects.create(
            user=self.nurse, medical_record_number='MRN-9', admission_date='2026-04-01',
            form_data={'record_time': '2026-04-02 10:00'},
        )

    def auth_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    def file_request(self, user=None, status=DeleteRequestStatus.PENDING):
        return DeleteRequest.objects.create(
            submission=self.submission,
            requester=user or self.nurse,
            medical_record_number=self.submission.medical_record_number,
            admission_date=self.submission.admission_date,
            status=status,
        )


class DeleteRequestCreateTests(DeleteRequestAPITestBase):
    """POST /api/v1/delete-requests/"""

    def test_owner_files_request(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/delete-requests/',
            {'submission_id': self.submission.pk, 'reason': '重複輸入'},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['message'], '刪除申請已送出，待管理員審核')
        req = DeleteRequest.objects.get(pk=response.data['id'])
        self.assertEqual(req.record_time, '2026-04-02 10:00')
        self.assertEqual(req.request_reason, '重複輸入')

    def test_missing_submission_id(self):
        self.auth_as(self.nurse_token)
        response = self.client.post('/api/v1/delete-requests/', {}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '缺少submission_id')

    def test_unknown_submission(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/delete-requests/', {'submission_id': 9999}, format='json',
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '找不到該筆資料')

    def test_non_owner_forbidden(self):
        self.auth_as(self.other_token)
        response = self.client.post(
            '/api/v1/delete-requests/', {'submission_id': self.submission.pk}, format='json',
        )
        self.assertEqual(response.status_code, 403)

    def test_duplicate_pending(self):
        self.file_request()
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/delete-requests/', {'submission_id': self.submission.pk}, format='json',
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['detail'], '此筆資料已有待審核的刪除申請')


class DeleteRequestListTests(DeleteRequestAPITestBase):
    """GET /api/v1/delete-requests/"""

    def test_user_sees_own(self):
        self.file_request()
        self.auth_as(self.other_token)
        response = self.client.get('/api/v1/delete-requests/')
        self.assertEqual(response.data['count'], 0)

        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/delete-requests/')
        self.assertEqual(response.data['count'], 1)
        item = response.data['results'][0]
        self.assertEqual(item['requester'], 'nurse')
        self.assertEqual(item['status_display'], '待審核')

    def test_admin_filters_by_status(self):
        self.file_request()
        self.file_request(status=DeleteRequestStatus.REJECTED)
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/delete-requests/', {'status': 'pending'})
        self.assertEqual(response.data['count'], 1)


class DeleteRequestApproveTests(DeleteRequestAPITestBase):
    """PUT/POST /api/v1/delete-requests/{id}/approve/"""

    def test_admin_approves(self):
        req = self.file_request()
        self.auth_as(self.admin_token)
        response = self.client.put(f'/api/v1/delete-requests/{req.pk}/approve/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], '已核准刪除申請，資料已刪除')
        self.assertFalse(Submission.objects.filter(pk=self.submission.pk).exists())
        req.refresh_from_db()
        self.assertEqual(req.status, DeleteRequestStatus.APPROVED)
        self.assertEqual(req.resolved_by, self.admin)

    def test_user_cannot_approve(self):
        req = self.file_request()
        self.auth_as(self.nurse_token)
        response = self.client.post(f'/api/v1/delete-requests/{req.pk}/approve/')
        self.assertEqual(response.status_code, 403)

    def test_already_resolved(self):
        req = self.file_request(status=DeleteRequestStatus.REJECTED)
        self.auth_as(self.admin_token)
        response = self.client.post(f'/api/v1/delete-requests/{req.pk}/approve/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '此申請已處理')

    def test_submission_gone(self):
        req = self.file_request()
        self.submission.delete()
        self.auth_as(self.admin_token)
        response = self.client.post(f'/api/v1/delete-requests/{req.pk}/approve/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '找不到要刪除的資料')

    def test_unknown_request(self):
        self.auth_as(self.admin_token)
        response = self.client.post('/api/v1/delete-requests/9999/approve/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '找不到該刪除申請')


class DeleteRequestRejectTests(DeleteRequestAPITestBase):
    """PUT/POST /api/v1/delete-requests/{id}/reject/"""

    def test_admin_rejects(self):
        req = self.file_request()
        self.auth_as(self.admin_token)
        response = self.client.put(
            f'/api/v1/delete-requests/{req.pk}/reject/', {'reason': '資料正確'}, format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], '已拒絕刪除申請')
        req.refresh_from_db()
        self.assertEqual(req.status, DeleteRequestStatus.REJECTED)
        self.assertEqual(req.reject_reason, '資料正確')
        self.assertTrue(Submission.objects.filter(pk=self.submission.pk).exists())


class DeleteRequestDiscardTests(DeleteRequestAPITestBase):
    """DELETE /api/v1/delete-requests/{id}/"""

    def test_admin_discards_resolved(self):
        req = self.file_request(status=DeleteRequestStatus.APPROVED)
        self.auth_as(self.admin_token)
        response = self.client.delete(f'/api/v1/delete-requests/{req.pk}/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(DeleteRequest.objects.filter(pk=req.pk).exists())

    def test_pending_cannot_be_discarded(self):
        req = self.file_request()
        self.auth_as(self.admin_token)
        response = self.client.delete(f'/api/v1/delete-requests/{req.pk}/')
        self.assertEqual(response.status_code, 400)

    def test_user_cannot_discard(self):
        req = self.file_request(status=DeleteRequestStatus.REJECTED)
        self.auth_as(self.nurse_token)
        response = self.client.delete(f'/api/v1/delete-requests/{req.pk}/')
        self.assertEqual(response.status_code, 403)


class PendingCountTests(DeleteRequestAPITestBase):
    """GET /api/v1/delete-requests/pending-count/"""

    def test_count(self):
        self.file_request()
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/delete-requests/pending-count/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)

    def test_admin_only(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/delete-requests/pending-count/')
        self.assertEqual(response.status_code, 403)

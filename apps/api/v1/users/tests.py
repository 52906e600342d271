"""Tests for the user management API."""

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, UserRole, Hospital
from apps.case_reports.models import Submission


class UserAPITestBase(TestCase):
    """Base class with user fixtures."""

    @classmethod
    def setUpTestData(cls):
        cls.admin = User.objects.create_user(
            username='boss', password='testpass123', hospital=Hospital.NEIHU,
            role=UserRole.ADMIN,
        )
        cls.superuser = User.objects.create_superuser(username='root', password='testpass123')
        cls.nurse = User.objects.create_user(
            username='nurse', password='testpass123', hospital=Hospital.SONGSHAN,
        )
        cls.admin_token = Token.objects.create(user=cls.admin)
        cls.nurse_token = Token.objects.create(user=cls.nurse)

    def setUp(self):
        self.client = APIClient()

    def auth_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')


class UserListTests(UserAPITestBase):
    """GET /api/v1/users/"""

    def test_requires_admin(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['detail'], '權限不足')

    def test_lists_only_regular_users(self):
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, 200)
        usernames = [u['username'] for u in response.data['results']]
        self.assertEqual(usernames, ['nurse'])

    def test_submission_count(self):
        Submission.objects.create(
            user=self.nurse, medical_record_number='M1', admission_date='2026-01-01',
        )
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.data['results'][0]['submission_count'], 1)


class UserCreateTests(UserAPITestBase):
    """POST /api/v1/users/"""

    def test_create(self):
        self.auth_as(self.admin_token)
        response = self.client.post(
            '/api/v1/users/',
            {'username': 'newbie', 'password': 'secret99', 'hospital': Hospital.PENGHU},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['message'], '使用者已建立')
        user = User.objects.get(username='newbie')
        self.assertEqual(user.role, UserRole.USER)
        self.assertTrue(user.check_password('secret99'))

    def test_missing_fields(self):
        self.auth_as(self.admin_token)
        response = self.client.post('/api/v1/users/', {'username': 'x'}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '請填寫所有必要欄位')

    def test_missing_username(self):
        self.auth_as(self.admin_token)
        response = self.client.post(
            '/api/v1/users/', {'password': 'secret99', 'hospital': Hospital.PENGHU}, format='json',
        )
        self.assertEqual(response.data['detail'], '請填寫所有必要欄位')

    def test_invalid_hospital(self):
        self.auth_as(self.admin_token)
        response = self.client.post(
            '/api/v1/users/',
            {'username': 'newbie', 'password': 'secret99', 'hospital': 'Nowhere'},
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '無效的醫院選項')

    def test_duplicate_username(self):
        self.auth_as(self.admin_token)
        response = self.client.post(
            '/api/v1/users/',
            {'username': 'nurse', 'password': 'secret99', 'hospital': Hospital.PENGHU},
            format='json',
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['detail'], '此帳號已存在')


class UserUpdateTests(UserAPITestBase):
    """PATCH /api/v1/users/{id}/"""

    def test_update_profile_and_password(self):
        self.auth_as(self.admin_token)
        response = self.client.patch(
            f'/api/v1/users/{self.nurse.pk}/',
            {'hospital': Hospital.KAOHSIUNG, 'new_password': 'changed1'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['hospital'], Hospital.KAOHSIUNG)
        self.nurse.refresh_from_db()
        self.assertTrue(self.nurse.check_password('changed1'))

    def test_short_new_password(self):
        self.auth_as(self.admin_token)
        response = self.client.patch(
            f'/api/v1/users/{self.nurse.pk}/', {'new_password': '123'}, format='json',
        )
        self.assertEqual(response.status_code, 400)

    def test_cannot_edit_admin(self):
        self.auth_as(self.admin_token)
        response = self.client.patch(
            f'/api/v1/users/{self.superuser.pk}/', {'phone': '1'}, format='json',
        )
        self.assertEqual(response.status_code, 404)


class UserDeleteTests(UserAPITestBase):
    """DELETE /api/v1/users/{id}/"""

    def test_delete_keeps_submissions(self):
        submission = Submission.objects.create(
            user=self.nurse, medical_record_number='M1', admission_date='2026-01-01',
        )
        self.auth_as(self.admin_token)
        response = self.client.delete(f'/api/v1/users/{self.nurse.pk}/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(pk=self.nurse.pk).exists())
        submission.refresh_from_db()
        self.assertIsNone(submission.user)

    def test_admin_not_deletable(self):
        self.auth_as(self.admin_token)
        response = self.client.delete(f'/api/v1/users/{self.admin.pk}/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '找不到使用者或無法刪除管理員')
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())


class UserResetPasswordTests(UserAPITestBase):
    """POST /api/v1/users/{id}/reset-password/"""

    def test_reset_unlocks(self):
        User.objects.filter(pk=self.nurse.pk).update(failed_login_attempts=9)
        self.auth_as(self.admin_token)
        response = self.client.post(
            f'/api/v1/users/{self.nurse.pk}/reset-password/',
            {'new_password': 'reset123'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], '密碼已重設')
        self.nurse.refresh_from_db()
        self.assertTrue(self.nurse.check_password('reset123'))
        self.assertEqual(self.nurse.failed_login_attempts, 0)

    def test_short_password(self):
        self.auth_as(self.admin_token)
        response = self.client.post(
            f'/api/v1/users/{self.nurse.pk}/reset-password/',
            {'new_password': '1'},
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '新密碼至少需要6個字元')

    def test_unknown_user(self):
        self.auth_as(self.admin_token)
        response = self.client.post(
            '/api/v1/users/9999/reset-password/', {'new_password': 'reset123'}, format='json',
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '找不到使用者')

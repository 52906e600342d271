"""Tests for the Auth API."""

from django.test import TestCase, override_settings
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, UserRole, Hospital


class AuthAPITestBase(TestCase):
    """Base class with user fixtures."""

    @classmethod
    def setUpTestData(cls):
        cls.nurse = User.objects.create_user(
            username='nurse', email='nurse@test.com', password='testpass123',
            hospital=Hospital.SONGSHAN, phone='0912345678',
            display_name='林護理師',
        )
        cls.nurse.security_question = '最喜歡的顏色'
        cls.nurse.set_security_answer('Blue')
        cls.nurse.save()
        cls.admin = User.objects.create_user(
            username='boss', email='boss@test.com', password='testpass123',
            hospital=Hospital.NEIHU, role=UserRole.ADMIN,
        )
        cls.nurse_token = Token.objects.create(user=cls.nurse)
        cls.admin_token = Token.objects.create(user=cls.admin)

    def setUp(self):
        self.client = APIClient()

    def auth_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')


class LoginTests(AuthAPITestBase):
    """POST /api/v1/auth/login/"""

    def test_login_returns_profile(self):
        response = self.client.post(
            '/api/v1/auth/login/',
            {'username': 'nurse', 'password': 'testpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['username'], 'nurse')
        self.assertEqual(response.data['hospital'], Hospital.SONGSHAN)
        self.assertEqual(response.data['role'], 'user')
        self.assertNotIn('password', response.data)

    def test_session_is_usable_after_login(self):
        self.client.post(
            '/api/v1/auth/login/',
            {'username': 'nurse', 'password': 'testpass123'},
            format='json',
        )
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, 200)

    def test_missing_fields(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'nurse'}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '請輸入帳號和密碼')

    def test_wrong_password(self):
        response = self.client.post(
            '/api/v1/auth/login/',
            {'username': 'nurse', 'password': 'nope'},
            format='json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['detail'], '帳號或密碼錯誤')
        self.nurse.refresh_from_db()
        self.assertEqual(self.nurse.failed_login_attempts, 1)

    def test_unknown_user_same_message(self):
        response = self.client.post(
            '/api/v1/auth/login/',
            {'username': 'ghost', 'password': 'nope'},
            format='json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['detail'], '帳號或密碼錯誤')

    @override_settings(MHAR_BSI={'MAX_FAILED_LOGINS': 2, 'LOCKOUT_MINUTES': 30})
    def test_lockout_after_repeated_failures(self):
        for _ in range(2):
            self.client.post(
                '/api/v1/auth/login/',
                {'username': 'nurse', 'password': 'nope'},
                format='json',
            )
        response = self.client.post(
            '/api/v1/auth/login/',
            {'username': 'nurse', 'password': 'testpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, 423)

    def test_success_resets_failures(self):
        self.client.post(
            '/api/v1/auth/login/',
            {'username': 'nurse', 'password': 'nope'},
            format='json',
        )
        self.client.post(
            '/api/v1/auth/login/',
            {'username': 'nurse', 'password': 'testpass123'},
            format='json',
        )
        self.nurse.refresh_from_db()
        self.assertEqual(self.nurse.failed_login_attempts, 0)


class LogoutTests(AuthAPITestBase):
    """POST /api/v1/auth/logout/"""

    def test_requires_auth(self):
        response = self.client.post('/api/v1/auth/logout/')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['detail'], '未登入')

    def test_logout_revokes_token(self):
        self.auth_as(self.nurse_token)
        response = self.client.post('/api/v1/auth/logout/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Token.objects.filter(user=self.nurse).exists())


class CurrentUserGetTests(AuthAPITestBase):
    """GET /api/v1/auth/me/"""

    def test_requires_auth(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, 401)

    def test_returns_profile(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['username'], 'nurse')
        self.assertEqual(response.data['display_name'], '林護理師')
        self.assertEqual(response.data['security_question'], '最喜歡的顏色')
        self.assertNotIn('security_answer_hash', response.data)

    def test_admin_profile(self):
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['role'], 'admin')


class CurrentUserPatchTests(AuthAPITestBase):
    """PATCH /api/v1/auth/me/"""

    def test_update_contact_fields(self):
        self.auth_as(self.nurse_token)
        response = self.client.patch(
            '/api/v1/auth/me/',
            {'phone': '0987654321', 'line_id': 'nurse_line'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['phone'], '0987654321')
        self.nurse.refresh_from_db()
        self.assertEqual(self.nurse.line_id, 'nurse_line')

    def test_update_security_answer(self):
        self.auth_as(self.nurse_token)
        self.client.patch(
            '/api/v1/auth/me/',
            {'security_question': '寵物名字', 'security_answer': 'Lucky'},
            format='json',
        )
        self.nurse.refresh_from_db()
        self.assertEqual(self.nurse.security_question, '寵物名字')
        self.assertTrue(self.nurse.check_security_answer('lucky'))

    def test_role_and_hospital_ignored(self):
        self.auth_as(self.nurse_token)
        self.client.patch(
            '/api/v1/auth/me/',
            {'role': 'admin', 'hospital': Hospital.NEIHU},
            format='json',
        )
        self.nurse.refresh_from_db()
        self.assertEqual(self.nurse.role, UserRole.USER)
        self.assertEqual(self.nurse.hospital, Hospital.SONGSHAN)

    def test_empty_patch_is_ok(self):
        self.auth_as(self.nurse_token)
        response = self.client.patch('/api/v1/auth/me/', {}, format='json')
        self.assertEqual(response.status_code, 200)


class ChangePasswordTests(AuthAPITestBase):
    """POST /api/v1/auth/change-password/"""

    def test_change_password(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/auth/change-password/',
            {'current_password': 'testpass123', 'new_password': 'newpass456'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.nurse.refresh_from_db()
        self.assertTrue(self.nurse.check_password('newpass456'))

    def test_wrong_current_password(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/auth/change-password/',
            {'current_password': 'wrong', 'new_password': 'newpass456'},
            format='json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['detail'], '目前密碼錯誤')

    def test_short_new_password(self):
        self.auth_as(self.nurse_token)
        response = self.client.post(
            '/api/v1/auth/change-password/',
            {'current_password': 'testpass123', 'new_password': '123'},
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '新密碼至少需要6個字元')


class RegisterTests(AuthAPITestBase):
    """POST /api/v1/auth/register/"""

    def payload(self, **overrides):
        data = {
            'username': 'newbie',
            'password': 'secret99',
            'hospital': Hospital.TAOYUAN,
            'email': 'newbie@test.com',
            'security_question': '出生城市',
            'security_answer': 'Taipei',
        }
        data.update(overrides)
        return data

    def test_register_creates_regular_user(self):
        response = self.client.post('/api/v1/auth/register/', self.payload(), format='json')
        self.assertEqual(response.status_code, 201)
        user = User.objects.get(username='newbie')
        self.assertEqual(user.role, UserRole.USER)
        self.assertEqual(user.hospital, Hospital.TAOYUAN)
        self.assertTrue(user.check_password('secret99'))
        self.assertTrue(user.check_security_answer(' taipei '))

    def test_cannot_self_register_as_admin(self):
        self.client.post('/api/v1/auth/register/', self.payload(role='admin'), format='json')
        self.assertEqual(User.objects.get(username='newbie').role, UserRole.USER)

    def test_duplicate_username(self):
        response = self.client.post(
            '/api/v1/auth/register/', self.payload(username='nurse'), format='json',
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['detail'], '此帳號已存在')

    def test_invalid_hospital(self):
        response = self.client.post(
            '/api/v1/auth/register/', self.payload(hospital='Mayo'), format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '無效的醫院選項')

    def test_short_password(self):
        response = self.client.post(
            '/api/v1/auth/register/', self.payload(password='12345'), format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '密碼至少需要6個字元')

    def test_missing_security_answer(self):
        data = self.payload()
        del data['security_answer']
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '請填寫所有必要欄位')


class ForgotUsernameTests(AuthAPITestBase):
    """POST /api/v1/auth/forgot-username/"""

    def test_lookup(self):
        response = self.client.post(
            '/api/v1/auth/forgot-username/',
            {'email': 'NURSE@test.com', 'phone': '0912345678'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['username'], 'nurse')

    def test_no_match(self):
        response = self.client.post(
            '/api/v1/auth/forgot-username/',
            {'email': 'nurse@test.com', 'phone': '0000000000'},
            format='json',
        )
        self.assertEqual(response.status_code, 404)


class SecurityQuestionTests(AuthAPITestBase):
    """GET /api/v1/auth/security-question/"""

    def test_returns_question(self):
        response = self.client.get('/api/v1/auth/security-question/', {'username': 'nurse'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['security_question'], '最喜歡的顏色')

    def test_account_without_question(self):
        response = self.client.get('/api/v1/auth/security-question/', {'username': 'boss'})
        self.assertEqual(response.status_code, 404)


class ResetPasswordTests(AuthAPITestBase):
    """POST /api/v1/auth/reset-password/"""

    def test_reset_with_correct_answer(self):
        response = self.client.post(
            '/api/v1/auth/reset-password/',
            {'username': 'nurse', 'security_answer': '  BLUE ', 'new_password': 'fresh123'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.nurse.refresh_from_db()
        self.assertTrue(self.nurse.check_password('fresh123'))

    def test_wrong_answer_and_unknown_user_look_the_same(self):
        wrong = self.client.post(
            '/api/v1/auth/reset-password/',
            {'username': 'nurse', 'security_answer': 'red', 'new_password': 'fresh123'},
            format='json',
        )
        unknown = self.client.post(
            '/api/v1/auth/reset-password/',
            {'username': 'ghost', 'security_answer': 'red', 'new_password': 'fresh123'},
            format='json',
        )
        self.assertEqual(wrong.status_code, 400)
        self.assertEqual(wrong.data, unknown.data)

    def test_reset_clears_lockout(self):
        User.objects.filter(pk=self.nurse.pk).update(failed_login_attempts=5)
        self.client.post(
            '/api/v1/auth/reset-password/',
            {'username': 'nurse', 'security_answer': 'blue', 'new_password': 'fresh123'},
            format='json',
        )
        self.nurse.refresh_from_db()
        self.assertEqual(self.nurse.failed_login_attempts, 0)


class ObtainTokenTests(AuthAPITestBase):
    """POST /api/v1/auth/token/"""

    def test_obtain_token(self):
        response = self.client.post(
            '/api/v1/auth/token/',
            {'username': 'nurse', 'password': 'testpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn('token', response.data)
        self.assertEqual(response.data['username'], 'nurse')
        self.assertEqual(response.data['hospital'], Hospital.SONGSHAN)

    def test_token_rotates(self):
        old_key = self.nurse_token.key
        response = self.client.post(
            '/api/v1/auth/token/',
            {'username': 'nurse', 'password': 'testpass123'},
            format='json',
        )
        self.assertNotEqual(response.data['token'], old_key)
        self.assertFalse(Token.objects.filter(key=old_key).exists())

    def test_invalid_credentials(self):
        response = self.client.post(
            '/api/v1/auth/token/',
            {'username': 'nurse', 'password': 'wrong'},
            format='json',
        )
        self.assertEqual(response.status_code, 401)

    def test_missing_fields(self):
        response = self.client.post('/api/v1/auth/token/', {}, format='json')
        self.assertEqual(response.status_code, 400)

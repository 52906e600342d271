"""Tests for MHAR-BSI API infrastructure: throttling, exceptions, Swagger."""

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, Hospital
from apps.api.exceptions import _scrub_phi_fields, first_error_message


class ExceptionHandlerTests(TestCase):
    """PHI-safe exception handler tests."""

    def test_scrubs_phi_fields_from_dict(self):
        data = {
            'medical_record_number': ['This field is required.'],
            'name': ['Too long.'],
            'pathogen': ['This field is required.'],
        }
        _scrub_phi_fields(data)
        self.assertEqual(data['medical_record_number'], ['此欄位有誤'])
        self.assertEqual(data['name'], ['此欄位有誤'])
        # Non-PHI field should be untouched
        self.assertEqual(data['pathogen'], ['This field is required.'])

    def test_scrub_is_case_insensitive(self):
        data = {'MRN': ['Error']}
        _scrub_phi_fields(data)
        self.assertEqual(data['MRN'], ['此欄位有誤'])

    def test_scrub_handles_non_dict(self):
        # Should not raise
        _scrub_phi_fields(['not', 'a', 'dict'])
        _scrub_phi_fields(None)


class FirstErrorMessageTests(TestCase):

    def test_first_field_message(self):
        errors = {'username': ['請填寫所有必要欄位'], 'password': ['密碼至少需要6個字元']}
        self.assertEqual(first_error_message(errors), '請填寫所有必要欄位')

    def test_nested(self):
        self.assertEqual(first_error_message({'form_data': {'x': ['bad']}}), 'bad')

    def test_default(self):
        self.assertEqual(first_error_message({}), '資料格式錯誤')


class ThrottleConfigTests(TestCase):
    """Verify throttle rates are configured in settings."""

    def test_throttle_scopes_configured(self):
        from django.conf import settings
        rates = settings.REST_FRAMEWORK.get('DEFAULT_THROTTLE_RATES', {})
        self.assertIn('read', rates)
        self.assertIn('write', rates)

    def test_production_rates(self):
        from mhar_project.settings import base
        rates = base.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']
        self.assertEqual(rates['read'], '100/min')
        self.assertEqual(rates['write'], '30/min')


class SwaggerUITests(TestCase):
    """Verify API documentation endpoints are accessible."""

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username='testuser', password='testpass123', hospital=Hospital.NEIHU,
        )
        cls.token = Token.objects.create(user=cls.user)

    def test_schema_endpoint_returns_200(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Token {self.token.key}')
        response = client.get('/api/schema/')
        self.assertEqual(response.status_code, 200)

    def test_docs_endpoint_returns_200(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Token {self.token.key}')
        response = client.get('/api/docs/')
        self.assertEqual(response.status_code, 200)

    def test_v1_root_returns_200(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Token {self.token.key}')
        response = client.get('/api/v1/')
        self.assertEqual(response.status_code, 200)

    def test_anonymous_gets_401_in_chinese(self):
        client = APIClient()
        response = client.get('/api/v1/')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['detail'], '未登入')

"""Tests for the CSV export API."""

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, UserRole, Hospital
from apps.case_reports.models import Submission


class ExportAPITestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.nurse = User.objects.create_user(
            username='nurse', password='testpass123', hospital=Hospital.SONGSHAN,
        )
        cls.other = User.objects.create_user(
            username='other', password='testpass123', hospital=Hospital.HUALIEN,
        )
        cls.admin = User.objects.create_user(
            username='boss', password='testpass123', hospital=Hospital.NEIHU,
            role=UserRole.ADMIN,
        )
        cls.nurse_token = Token.objects.create(user=cls.nurse)
        cls.other_token = Token.objects.create(user=cls.other)
        cls.admin_token = Token.objects.create(user=cls.admin)

        cls.first = Submission.objects.create(
            user=cls.nurse, medical_record_number='A100', admission_date='2026-01-05',
            form_data={'pathogen': 'CRKP', 'positive_culture_date': '2026-01-06',
                       'primary_source': ['Lung'], 'septic_shock': 'Yes'},
        )
        cls.second = Submission.objects.create(
            user=cls.other, medical_record_number='B200', admission_date='2026-02-10',
            form_data={'pathogen': 'CRAB', 'positive_culture_date': '2026-02-12'},
        )

    def setUp(self):
        self.client = APIClient()

    def auth_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    def lines(self, response):
        return response.content.decode('utf-8').lstrip('\ufeff').splitlines()


class ExportCSVTests(ExportAPITestBase):
    """GET /api/v1/export/csv/"""

    def test_requires_auth(self):
        response = self.client.get('/api/v1/export/csv/')
        self.assertEqual(response.status_code, 401)

    def test_user_exports_own_rows(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/export/csv/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('mhar-bsi-export-', response['Content-Disposition'])
        lines = self.lines(response)
        self.assertEqual(len(lines), 2)
        self.assertIn('A100', lines[1])
        self.assertTrue(response.content.decode('utf-8').startswith('\ufeff'))

    def test_admin_exports_everything(self):
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/export/csv/')
        self.assertEqual(len(self.lines(response)), 3)

    def test_filter_by_pathogen(self):
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/export/csv/', {'pathogens': 'CRAB,CRPA'})
        lines = self.lines(response)
        self.assertEqual(len(lines), 2)
        self.assertIn('B200', lines[1])

    def test_filter_by_user_hospital(self):
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/export/csv/', {'hospital': Hospital.SONGSHAN})
        lines = self.lines(response)
        self.assertEqual(len(lines), 2)
        self.assertIn('A100', lines[1])

    def test_ids_override_other_filters(self):
        self.auth_as(self.admin_token)
        response = self.client.get(
            '/api/v1/export/csv/',
            {'ids': str(self.second.pk), 'pathogens': 'CRKP'},
        )
        lines = self.lines(response)
        self.assertEqual(len(lines), 2)
        self.assertIn('B200', lines[1])

    def test_no_matching_rows(self):
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/export/csv/', {'mrn': 'ZZZ'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '無符合篩選條件的資料可匯出')

    def test_nothing_to_export(self):
        user = User.objects.create_user(
            username='empty', password='testpass123', hospital=Hospital.PENGHU,
        )
        self.auth_as(Token.objects.create(user=user))
        response = self.client.get('/api/v1/export/csv/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['detail'], '沒有資料可匯出')

    def test_stored_misshapen_form_still_exports(self):
        Submission.objects.create(
            user=self.nurse, medical_record_number='C300', admission_date='2026-03-01',
            form_data={
                'pathogen': ['CRKP', 'CRAB'],
                'antibiotic_details': {'carbapenem': ['Meropenem']},
                'mic_data': {'meropenem': ['8']},
            },
        )
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/export/csv/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.lines(response)), 4)

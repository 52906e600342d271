"""Tests for the statistics API."""

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, UserRole, Hospital
from apps.case_reports.models import Submission, DataStatus


class StatisticsAPITests(TestCase):
    """GET /api/v1/statistics/"""

    @classmethod
    def setUpTestData(cls):
        cls.nurse = User.objects.create_user(
            username='nurse', password='testpass123', hospital=Hospital.SONGSHAN,
        )
        cls.other = User.objects.create_user(
            username='other', password='testpass123', hospital=Hospital.TAICHUNG,
        )
        cls.admin = User.objects.create_user(
            username='boss', password='testpass123', hospital=Hospital.NEIHU,
            role=UserRole.ADMIN,
        )
        cls.nurse_token = Token.objects.create(user=cls.nurse)
        cls.admin_token = Token.objects.create(user=cls.admin)

        rows = [
            (cls.nurse, 'S1', Hospital.SONGSHAN, 'CRKP', DataStatus.COMPLETE),
            (cls.nurse, 'S2', Hospital.SONGSHAN, 'CRAB', DataStatus.INCOMPLETE),
            (cls.other, 'T1', Hospital.TAICHUNG, 'CRAB', DataStatus.COMPLETE),
        ]
        for user, mrn, hospital, pathogen, data_status in rows:
            Submission.objects.create(
                user=user, medical_record_number=mrn, admission_date='2026-01-01',
                form_data={'hospital': hospital, 'pathogen': pathogen},
                data_status=data_status,
            )

    def setUp(self):
        self.client = APIClient()

    def auth_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    def pathogen_counts(self, data):
        return {item['name']: item['count'] for item in data['pathogen_stats']}

    def test_requires_auth(self):
        response = self.client.get('/api/v1/statistics/')
        self.assertEqual(response.status_code, 401)

    def test_user_defaults_to_own_hospital(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/statistics/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total_records'], 2)
        self.assertEqual(self.pathogen_counts(response.data)['CRAB'], 1)
        hospitals = {item['name']: item['count'] for item in response.data['hospital_stats']}
        self.assertEqual(hospitals, {Hospital.SONGSHAN: 2, Hospital.TAICHUNG: 1})

    def test_user_all_scope(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/statistics/', {'pathogen_scope': 'all'})
        self.assertEqual(self.pathogen_counts(response.data)['CRAB'], 2)

    def test_invalid_scope(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/statistics/', {'pathogen_scope': 'mars'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '無效的統計範圍')

    def test_completion_for_own_hospital(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/statistics/')
        completion = {item['name']: item['count'] for item in response.data['completion_stats']}
        self.assertEqual(completion, {'已完成': 1, '未完成': 1})

    def test_admin_narrows_by_hospital(self):
        self.auth_as(self.admin_token)
        response = self.client.get(
            '/api/v1/statistics/',
            {'pathogen_hospital': Hospital.TAICHUNG, 'completion_hospital': Hospital.SONGSHAN},
        )
        self.assertEqual(response.data['total_records'], 3)
        counts = self.pathogen_counts(response.data)
        self.assertEqual(counts['CRAB'], 1)
        self.assertEqual(counts['CRKP'], 0)
        self.assertEqual(len(response.data['completion_stats']), 2)

    def test_stored_misshapen_form_is_counted_as_unknown(self):
        Submission.objects.create(
            user=self.nurse, medical_record_number='S9', admission_date='2026-01-01',
            form_data={'hospital': [Hospital.SONGSHAN], 'pathogen': ['CRKP', 'CRAB']},
        )
        self.auth_as(self.admin_token)
        response = self.client.get('/api/v1/statistics/')
        self.assertEqual(response.status_code, 200)
        hospitals = {item['name']: item['count'] for item in response.data['hospital_stats']}
        self.assertEqual(hospitals['未知'], 1)
        self.assertEqual(self.pathogen_counts(response.data), {'CRKP': 1, 'CRAB': 2, 'CRECOLI': 0, 'CRPA': 0})

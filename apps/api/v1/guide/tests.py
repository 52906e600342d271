"""Tests for the project guide API."""

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token

from apps.authentication.models import User, UserRole, Hospital
from apps.project_guide.models import ProjectGuide


class ProjectGuideAPITests(TestCase):
    """GET/PUT /api/v1/guide/"""

    @classmethod
    def setUpTestData(cls):
        cls.nurse = User.objects.create_user(
            username='nurse', password='testpass123', hospital=Hospital.SONGSHAN,
        )
        cls.admin = User.objects.create_user(
            username='boss', password='testpass123', hospital=Hospital.NEIHU,
            role=UserRole.ADMIN,
        )
        cls.nurse_token = Token.objects.create(user=cls.nurse)
        cls.admin_token = Token.objects.create(user=cls.admin)

    def setUp(self):
        self.client = APIClient()

    def auth_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    def test_requires_auth(self):
        response = self.client.get('/api/v1/guide/')
        self.assertEqual(response.status_code, 401)

    def test_empty_guide(self):
        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/guide/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['content'], '')
        self.assertIsNone(response.data['updated_by'])

    def test_admin_updates(self):
        self.auth_as(self.admin_token)
        response = self.client.put(
            '/api/v1/guide/', {'content': '<h1>收案說明</h1>'}, format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['updated_by'], 'boss')
        guide = ProjectGuide.load()
        self.assertEqual(guide.content, '<h1>收案說明</h1>')
        self.assertEqual(ProjectGuide.objects.count(), 1)

        self.auth_as(self.nurse_token)
        response = self.client.get('/api/v1/guide/')
        self.assertEqual(response.data['content'], '<h1>收案說明</h1>')

    def test_user_cannot_update(self):
        self.auth_as(self.nurse_token)
        response = self.client.put('/api/v1/guide/', {'content': 'x'}, format='json')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['detail'], '權限不足')

    def test_missing_content(self):
        self.auth_as(self.admin_token)
        response = self.client.put('/api/v1/guide/', {}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['detail'], '缺少內容')

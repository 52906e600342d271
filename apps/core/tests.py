"""Core app tests: Celery wiring and the health check endpoint."""

from unittest.mock import patch, MagicMock

from django.test import TestCase


class CeleryAppTests(TestCase):
    """Verify the Celery app initializes and discovers tasks."""

    def test_celery_app_loads(self):
        from mhar_project.celery import app
        self.assertEqual(app.main, 'mhar_bsi')

    def test_celery_app_exported_from_init(self):
        from mhar_project import celery_app
        self.assertEqual(celery_app.main, 'mhar_bsi')

    def test_purge_task_registered(self):
        import importlib
        from mhar_project.celery import app

        importlib.import_module('apps.delete_requests.tasks')
        self.assertIn(
            'apps.delete_requests.tasks.purge_resolved_delete_requests',
            list(app.tasks.keys()),
        )

    def test_beat_schedule_points_at_registered_task(self):
        from django.conf import settings
        entry = settings.CELERY_BEAT_SCHEDULE['purge-resolved-delete-requests-daily']
        self.assertEqual(
            entry['task'], 'apps.delete_requests.tasks.purge_resolved_delete_requests',
        )


class HealthCheckTests(TestCase):
    """GET /api/health/"""

    @patch('apps.core.views.redis.from_url')
    def test_healthy_when_redis_responds(self, mock_from_url):
        mock_from_url.return_value = MagicMock(ping=MagicMock(return_value=True))
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['status'], 'healthy')
        self.assertTrue(body['checks']['database']['status'])
        self.assertTrue(body['checks']['redis']['status'])

    @patch('apps.core.views.redis.from_url')
    def test_unhealthy_when_redis_down(self, mock_from_url):
        mock_from_url.return_value = MagicMock(
            ping=MagicMock(side_effect=ConnectionError('refused')),
        )
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, 503)
        body = response.json()
        self.assertEqual(body['status'], 'unhealthy')
        self.assertFalse(body['checks']['redis']['status'])
        self.assertTrue(body['checks']['database']['status'])

    @patch('apps.core.views.redis.from_url')
    def test_no_auth_required(self, mock_from_url):
        mock_from_url.return_value = MagicMock()
        response = self.client.get('/api/health/')
        self.assertNotIn(response.status_code, [401, 403])

"""
Celery application configuration for MHAR-BSI.

Sets up the Celery app with Django settings integration and
autodiscovery of tasks across all installed apps.
"""

import os

from celery import Celery

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'mhar_project.settings.development')

app = Celery('mhar_bsi')

# Load config from Django settings, using CELERY_ namespace
app.config_from_object('django.conf:settings', namespace='CELERY')

# Autodiscover tasks.py in all installed apps
app.autodiscover_tasks()

"""
URL configuration for mhar_project.

- /admin/       Django admin
- /api/health/  Health check
- /api/         REST API (schema, docs, v1)
"""
from django.contrib import admin
from django.urls import path, include

from apps.core.views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/health/', health_check, name='health-check'),
    path('api/', include('apps.api.urls')),
]

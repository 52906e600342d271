"""
MHAR-BSI Django - Development Settings

Local development with SQLite and relaxed cookie security.
"""

from .base import *

DEBUG = config('DEBUG', default=True, cast=bool)

ALLOWED_HOSTS = ['*']

SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:5173,http://127.0.0.1:5173',
    cast=lambda v: [s.strip() for s in v.split(',')]
)
CSRF_TRUSTED_ORIGINS = CORS_ALLOWED_ORIGINS

LOGGING['loggers']['apps']['level'] = 'DEBUG'

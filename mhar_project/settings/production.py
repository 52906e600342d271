"""
MHAR-BSI Django - Production Settings

PostgreSQL, Redis cache, HTTPS-only cookies.
"""

from .base import *

DEBUG = False

ALLOWED_HOSTS = config(
    'ALLOWED_HOSTS',
    default='mhar-bsi.example.org',
    cast=lambda v: [s.strip() for s in v.split(',')]
)

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='mhar_bsi'),
        'USER': config('DB_USER', default='mhar'),
        'PASSWORD': config('DB_PASSWORD'),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
        'CONN_MAX_AGE': 600,
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': config('REDIS_URL', default='redis://localhost:6379/1'),
        'OPTIONS': {
            'CLIENT_CLASS': 'django_redis.client.DefaultClient',
        }
    }
}

SESSION_ENGINE = 'django.contrib.sessions.backends.cached_db'

SECURE_SSL_REDIRECT = config('SECURE_SSL_REDIRECT', default=True, cast=bool)
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

LOGGING['handlers']['file']['filename'] = config('MHAR_LOG_FILE', default='/var/log/mhar-bsi/django.log')
LOGGING['handlers']['audit_file']['filename'] = config('MHAR_AUDIT_LOG_FILE', default='/var/log/mhar-bsi/audit.log')
LOGGING['loggers']['apps']['level'] = 'INFO'

from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.authentication'
    verbose_name = 'Authentication'

    def ready(self):
        from auditlog.registry import auditlog
        from .models import User

        auditlog.register(
            User,
            exclude_fields=['password', 'security_answer_hash', 'last_login'],
        )

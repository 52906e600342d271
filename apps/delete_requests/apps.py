from django.apps import AppConfig


class DeleteRequestsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.delete_requests'
    verbose_name = 'Delete Requests'

    def ready(self):
        from auditlog.registry import auditlog
        from .models import DeleteRequest

        auditlog.register(DeleteRequest)

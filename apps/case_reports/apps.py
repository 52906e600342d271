from django.apps import AppConfig


class CaseReportsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.case_reports'
    verbose_name = 'Case Reports'

    def ready(self):
        from auditlog.registry import auditlog
        from .models import Submission, SubmissionComment

        auditlog.register(Submission)
        auditlog.register(SubmissionComment)

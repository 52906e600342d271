from django.apps import AppConfig


class ProjectGuideConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.project_guide'
    verbose_name = 'Project Guide'

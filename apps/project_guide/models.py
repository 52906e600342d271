from django.conf import settings
from django.db import models

from apps.core.models import TimeStampedModel


class ProjectGuide(TimeStampedModel):
    """Single-row rich-text guide shown to every study user."""

    SINGLETON_ID = 1

    content = models.TextField(blank=True, default='', help_text="HTML content")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )

    class Meta:
        db_table = 'project_guide'
        verbose_name = 'Project Guide'
        verbose_name_plural = 'Project Guide'

    def __str__(self):
        return 'MHAR-BSI project guide'

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_ID
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        guide, _ = cls.objects.get_or_create(pk=cls.SINGLETON_ID)
        return guide

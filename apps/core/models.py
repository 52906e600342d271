"""
Abstract base models shared by the MHAR-BSI apps.
"""

from django.db import models


class TimeStampedModel(models.Model):
    """Adds self-maintained created_at / updated_at columns."""

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

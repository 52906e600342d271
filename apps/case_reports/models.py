"""
Django models for case report forms.

A Submission is one MHAR-BSI case report: the patient is identified by
medical record number plus admission date, and the clinical answers live
in a JSON document whose vocabulary is defined in form_schema.
"""

from django.conf import settings
from django.db import models

from apps.core.models import TimeStampedModel

MEDICAL_RECORD_NUMBER_MAX_LENGTH = 50
MEDICAL_RECORD_NUMBER_TOO_LONG = '病歷號長度不可超過50個字元'

# Stored as text; date range filters compare these strings lexically
ADMISSION_DATE_PATTERN = r'^\d{4}-\d{2}-\d{2}$'
ADMISSION_DATE_INVALID = '住院日期格式錯誤'


class DataStatus(models.TextChoices):
    COMPLETE = 'complete', '已完成'
    INCOMPLETE = 'incomplete', '未完成'


class Submission(TimeStampedModel):
    """One case report form."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='submissions',
        help_text="Account that entered the form; kept as NULL if the account is removed",
    )
    medical_record_number = models.CharField(
        max_length=MEDICAL_RECORD_NUMBER_MAX_LENGTH,
        db_index=True,
        help_text="Hospital medical record number (病歷號)",
    )
    admission_date = models.CharField(
        max_length=10,
        help_text="Admission date as YYYY-MM-DD",
    )
    form_data = models.JSONField(default=dict)
    data_status = models.CharField(
        max_length=20,
        choices=DataStatus.choices,
        default=DataStatus.INCOMPLETE,
        db_index=True,
    )
    update_count = models.PositiveIntegerField(
        default=1,
        help_text="Number of times the form has been saved",
    )

    class Meta:
        db_table = 'submissions'
        verbose_name = 'Submission'
        verbose_name_plural = 'Submissions'
        ordering = ['-updated_at']
        constraints = [
            models.UniqueConstraint(
                fields=['medical_record_number', 'admission_date'],
                name='unique_mrn_admission_date',
            ),
        ]
        indexes = [
            models.Index(fields=['user', '-updated_at'], name='submissions_user_upd_idx'),
        ]

    def __str__(self):
        return f"{self.medical_record_number} @ {self.admission_date} ({self.get_data_status_display()})"

    @property
    def hospital(self):
        """Hospital recorded inside the form itself."""
        return (self.form_data or {}).get('hospital', '')

    @property
    def pathogen(self):
        return (self.form_data or {}).get('pathogen', '')


class SubmissionComment(TimeStampedModel):
    """Reviewer discussion attached to a submission."""

    submission = models.ForeignKey(
        Submission,
        on_delete=models.CASCADE,
        related_name='comments',
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='submission_comments',
    )
    body = models.TextField()

    class Meta:
        db_table = 'submission_comments'
        ordering = ['created_at']

    def __str__(self):
        who = self.author.username if self.author else 'deleted user'
        return f"Comment by {who} on submission {self.submission_id}"

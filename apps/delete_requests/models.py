"""
Delete requests: regular users cannot remove a submission themselves,
they ask an administrator to do it.

The request keeps a snapshot of the record's identifiers so the audit
trail stays readable after the submission is gone.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.models import TimeStampedModel


class DeleteRequestStatus(models.TextChoices):
    PENDING = 'pending', '待審核'
    APPROVED = 'approved', '已核准'
    REJECTED = 'rejected', '已拒絕'


class DeleteRequest(TimeStampedModel):
    """A user's request to remove one submission."""

    submission = models.ForeignKey(
        'case_reports.Submission',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='delete_requests',
    )
    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='delete_requests',
    )

    # Snapshot of the submission at request time
    medical_record_number = models.CharField(max_length=50)
    admission_date = models.CharField(max_length=10)
    record_time = models.CharField(max_length=50, blank=True, default='')

    request_reason = models.TextField(blank=True, default='')
    status = models.CharField(
        max_length=20,
        choices=DeleteRequestStatus.choices,
        default=DeleteRequestStatus.PENDING,
        db_index=True,
    )
    reject_reason = models.TextField(blank=True, default='')

    # Resolution
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='resolved_delete_requests',
    )
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'delete_requests'
        verbose_name = 'Delete Request'
        verbose_name_plural = 'Delete Requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', '-created_at'], name='delreq_status_created_idx'),
            models.Index(fields=['submission', 'status'], name='delreq_submission_status_idx'),
        ]

    def __str__(self):
        return f"Delete {self.medical_record_number} @ {self.admission_date} ({self.get_status_display()})"

    @property
    def is_pending(self):
        return self.status == DeleteRequestStatus.PENDING

    def mark_resolved(self, status, resolved_by, reject_reason=''):
        self.status = status
        self.resolved_by = resolved_by
        self.resolved_at = timezone.now()
        if reject_reason:
            self.reject_reason = reject_reason
        self.save()

"""
Delete Request Service.

Approval workflow for removing submissions: users file a request, an
administrator approves (which deletes the submission) or rejects it.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.case_reports.exceptions import (
    DeleteRequestAlreadyResolved,
    DeleteRequestConflict,
)

from .models import DeleteRequest, DeleteRequestStatus

logger = logging.getLogger(__name__)


class SubmissionMissing(Exception):
    """The submission a request points at no longer exists."""


class DeleteRequestService:
    """Service for delete request operations."""

    def visible_to(self, user):
        qs = DeleteRequest.objects.select_related('requester', 'resolved_by', 'submission')
        if not user.can_review_delete_requests():
            qs = qs.filter(requester=user)
        return qs

    def has_pending(self, submission):
        return DeleteRequest.objects.filter(
            submission=submission, status=DeleteRequestStatus.PENDING,
        ).exists()

    def create(self, user, submission, reason=''):
        if self.has_pending(submission):
            raise DeleteRequestConflict()

        request = DeleteRequest.objects.create(
            submission=submission,
            requester=user,
            medical_record_number=submission.medical_record_number,
            admission_date=submission.admission_date,
            record_time=str((submission.form_data or {}).get('record_time') or ''),
            request_reason=reason or '',
        )
        logger.info(
            "Delete request %s filed by %s for submission %s",
            request.pk, user.username, submission.pk,
        )
        return request

    @transaction.atomic
    def approve(self, request, admin):
        """Delete the submission and mark the request approved."""
        if not request.is_pending:
            raise DeleteRequestAlreadyResolved()
        if request.submission is None:
            raise SubmissionMissing()

        submission_id = request.submission_id
        request.submission.delete()
        request.submission = None
        request.mark_resolved(DeleteRequestStatus.APPROVED, admin)
        logger.info(
            "Delete request %s approved by %s; submission %s deleted",
            request.pk, admin.username, submission_id,
        )
        return request

    def reject(self, request, admin, reason=''):
        if not request.is_pending:
            raise DeleteRequestAlreadyResolved()
        request.mark_resolved(DeleteRequestStatus.REJECTED, admin, reject_reason=reason or '')
        logger.info("Delete request %s rejected by %s", request.pk, admin.username)
        return request

    def discard(self, request):
        """Remove a resolved request record. Pending requests must be decided first."""
        if request.is_pending:
            raise DeleteRequestConflict('待審核的申請不能刪除')
        request_id = request.pk
        request.delete()
        logger.info("Delete request %s discarded", request_id)

    def pending_count(self):
        return DeleteRequest.objects.filter(status=DeleteRequestStatus.PENDING).count()

    def retention_days(self, days=None):
        if days is None:
            days = getattr(settings, 'MHAR_BSI', {}).get('DELETE_REQUEST_RETENTION_DAYS', 365)
        return days

    def resolved_before(self, days=None):
        """Approved/rejected requests resolved more than ``days`` ago."""
        cutoff = timezone.now() - timedelta(days=self.retention_days(days))
        return DeleteRequest.objects.filter(
            status__in=[DeleteRequestStatus.APPROVED, DeleteRequestStatus.REJECTED],
            resolved_at__lt=cutoff,
        )

    def purge_resolved(self, days=None):
        """Remove resolved requests older than the retention window.

        Returns the number of rows deleted.
        """
        days = self.retention_days(days)
        deleted, _ = self.resolved_before(days).delete()
        logger.info("Purged %d resolved delete requests older than %d days", deleted, days)
        return deleted

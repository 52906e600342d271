"""
Case Report Service.

Owns the rules around submissions: who sees what, duplicate detection on
(medical record number, admission date), update bookkeeping, comments and
the dashboard statistics.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Exists, OuterRef
from django.utils import timezone

from apps.delete_requests.models import DeleteRequest, DeleteRequestStatus

from .exceptions import DuplicateSubmission
from .form_schema import PATHOGENS
from .models import Submission, SubmissionComment, DataStatus

logger = logging.getLogger(__name__)

UNKNOWN_HOSPITAL = '未知'
ALL = 'all'
MY_HOSPITAL = 'my_hospital'


def _percentage(count, total):
    if not total:
        return 0
    return round(count / total * 100, 1)


class CaseReportService:
    """Service for case report operations."""

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def visible_to(self, user):
        """Submissions the user may see, annotated with has_pending_delete."""
        qs = Submission.objects.select_related('user')
        if not user.can_view_all_submissions():
            qs = qs.filter(user=user)
        pending = DeleteRequest.objects.filter(
            submission=OuterRef('pk'),
            status=DeleteRequestStatus.PENDING,
        )
        return qs.annotate(has_pending_delete=Exists(pending))

    def find_existing(self, user, medical_record_number, admission_date):
        """Look up a submission by its natural key.

        Admins search every hospital; regular users only their own forms.
        """
        qs = self.visible_to(user)
        return qs.filter(
            medical_record_number=medical_record_number,
            admission_date=admission_date,
        ).first()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user, medical_record_number, admission_date, form_data,
               data_status=DataStatus.INCOMPLETE):
        existing = Submission.objects.filter(
            medical_record_number=medical_record_number,
            admission_date=admission_date,
        ).only('id').first()
        if existing is not None:
            raise DuplicateSubmission(existing.id)

        try:
            with transaction.atomic():
                submission = Submission.objects.create(
                    user=user,
                    medical_record_number=medical_record_number,
                    admission_date=admission_date,
                    form_data=form_data,
                    data_status=data_status or DataStatus.INCOMPLETE,
                )
        except IntegrityError:
            # Lost a race against a concurrent insert of the same record
            existing = Submission.objects.get(
                medical_record_number=medical_record_number,
                admission_date=admission_date,
            )
            raise DuplicateSubmission(existing.id)

        logger.info(
            "Submission %s created by %s", submission.pk, user.username if user else None,
        )
        return submission

    def update(self, submission, form_data, data_status=None):
        """Replace the form document and bump update_count."""
        submission.form_data = form_data
        submission.data_status = data_status or DataStatus.INCOMPLETE
        submission.update_count += 1
        submission.save(update_fields=['form_data', 'data_status', 'update_count', 'updated_at'])
        logger.info("Submission %s updated (save #%d)", submission.pk, submission.update_count)
        return submission

    @transaction.atomic
    def delete(self, submission, deleted_by=None):
        """Delete a submission, closing any pending delete request for it as approved."""
        submission_id = submission.pk
        now = timezone.now()
        resolved = DeleteRequest.objects.filter(
            submission=submission, status=DeleteRequestStatus.PENDING,
        ).update(
            status=DeleteRequestStatus.APPROVED,
            resolved_by=deleted_by,
            resolved_at=now,
            updated_at=now,
        )
        submission.delete()
        logger.info(
            "Submission %s deleted (%d pending delete requests closed)", submission_id, resolved,
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(self, submission, author, body):
        comment = SubmissionComment.objects.create(
            submission=submission, author=author, body=body,
        )
        logger.debug("Comment %s added to submission %s", comment.pk, submission.pk)
        return comment

    def can_delete_comment(self, comment, user):
        return user.is_admin_role() or (
            comment.author_id is not None and comment.author_id == user.pk
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def statistics(self, user, pathogen_scope=MY_HOSPITAL,
                   pathogen_hospital=ALL, completion_hospital=ALL):
        """Dashboard statistics across every hospital's submissions.

        Hospital distribution always covers all hospitals. Regular users
        choose between their own hospital and everyone for the pathogen
        chart and always see completion for their own hospital; admins
        may narrow both charts to one hospital.
        """
        rows = list(Submission.objects.values_list('form_data', 'data_status'))
        total = len(rows)

        def hospital_of(form_data):
            hospital = (form_data or {}).get('hospital')
            if not isinstance(hospital, str) or not hospital:
                return UNKNOWN_HOSPITAL
            return hospital

        hospital_counts = {}
        for form_data, _ in rows:
            name = hospital_of(form_data)
            hospital_counts[name] = hospital_counts.get(name, 0) + 1

        hospital_stats = sorted(
            (
                {'name': name, 'count': count, 'percentage': _percentage(count, total)}
                for name, count in hospital_counts.items()
            ),
            key=lambda item: item['count'],
            reverse=True,
        )

        is_admin = user.is_admin_role()
        if is_admin:
            mine = rows
        else:
            mine = [r for r in rows if hospital_of(r[0]) == user.hospital]

        def only_hospital(name):
            if name in (None, '', ALL):
                return rows
            return [r for r in rows if hospital_of(r[0]) == name]

        if is_admin:
            pathogen_source = only_hospital(pathogen_hospital)
            completion_source = only_hospital(completion_hospital)
        else:
            pathogen_source = rows if pathogen_scope == ALL else mine
            completion_source = mine

        return {
            'total_records': len(mine),
            'hospital_stats': hospital_stats,
            'available_hospitals': sorted(hospital_counts),
            'pathogen_stats': self._pathogen_stats(pathogen_source),
            'completion_stats': self._completion_stats(completion_source),
        }

    def _pathogen_stats(self, rows):
        counts = {name: 0 for name in PATHOGENS}
        for form_data, _ in rows:
            pathogen = (form_data or {}).get('pathogen')
            if isinstance(pathogen, str) and pathogen in counts:
                counts[pathogen] += 1
        total = len(rows)
        return [
            {'name': name, 'count': counts[name], 'percentage': _percentage(counts[name], total)}
            for name in PATHOGENS
        ]

    def _completion_stats(self, rows):
        if not rows:
            return []
        complete = sum(1 for _, status in rows if status == DataStatus.COMPLETE)
        incomplete = len(rows) - complete
        return [
            {'name': DataStatus.COMPLETE.label, 'count': complete,
             'percentage': _percentage(complete, len(rows))},
            {'name': DataStatus.INCOMPLETE.label, 'count': incomplete,
             'percentage': _percentage(incomplete, len(rows))},
        ]

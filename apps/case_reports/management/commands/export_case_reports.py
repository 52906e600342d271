"""
Export case report forms to CSV.

Usage:
    python manage.py export_case_reports --output export.csv
    python manage.py export_case_reports --pathogens CRKP,CRAB --hospital 內湖總院
    python manage.py export_case_reports --ids 3,7,9 --output selected.csv
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from apps.case_reports.csv_export import build_export, export_filename, select_rows
from apps.case_reports.exceptions import NothingToExport
from apps.case_reports.models import Submission

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Export case report forms as a flattened CSV file'

    def add_arguments(self, parser):
        parser.add_argument(
            '--output', type=str, default=None,
            help='Output file (default: mhar-bsi-export-<today>.csv)',
        )

        filters = parser.add_argument_group('filters')
        filters.add_argument('--ids', type=str, help='Comma separated record ids (overrides other filters)')
        filters.add_argument('--admission-start', type=str, help='Admission date from (YYYY-MM-DD)')
        filters.add_argument('--admission-end', type=str, help='Admission date to (YYYY-MM-DD)')
        filters.add_argument('--culture-start', type=str, help='Positive culture date from (YYYY-MM-DD)')
        filters.add_argument('--culture-end', type=str, help='Positive culture date to (YYYY-MM-DD)')
        filters.add_argument('--hospital', type=str, help="Submitting account's hospital")
        filters.add_argument('--pathogens', type=str, help='Comma separated pathogens')
        filters.add_argument('--mrn', type=str, help='Medical record number substring')

    def handle(self, *args, **options):
        filters = {
            key: options[key] for key in (
                'ids', 'admission_start', 'admission_end', 'culture_start',
                'culture_end', 'hospital', 'pathogens', 'mrn',
            )
        }
        submissions = Submission.objects.select_related('user').order_by('-updated_at')

        try:
            rows = select_rows(submissions, filters)
        except NothingToExport as e:
            raise CommandError(e.message)

        output = options['output'] or export_filename()
        with open(output, 'w', encoding='utf-8', newline='') as fh:
            fh.write(build_export(rows))

        logger.info("Exported %d submissions to %s", len(rows), output)
        self.stdout.write(self.style.SUCCESS(f"Exported {len(rows)} submissions to {output}"))

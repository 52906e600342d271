"""
Import case report forms from a CSV file.

Usage:
    python manage.py import_case_reports data.csv --user nurse01
"""

from django.core.management.base import BaseCommand, CommandError

from apps.authentication.models import User
from apps.case_reports.csv_import import import_csv
from apps.case_reports.exceptions import ImportFormatError


class Command(BaseCommand):
    help = 'Import case report forms from a template or export CSV'

    def add_arguments(self, parser):
        parser.add_argument('path', type=str, help='CSV file to import')
        parser.add_argument(
            '--user', type=str, required=True,
            help='Username the records are filed under (its hospital is used)',
        )

    def handle(self, *args, **options):
        try:
            user = User.objects.get(username=options['user'])
        except User.DoesNotExist:
            raise CommandError(f"User '{options['user']}' not found")

        with open(options['path'], encoding='utf-8-sig', newline='') as fh:
            text = fh.read()

        try:
            result = import_csv(user, text)
        except ImportFormatError as e:
            raise CommandError(e.message)

        style = self.style.SUCCESS if result['failed'] == 0 else self.style.WARNING
        self.stdout.write(style(
            f"Imported {result['success']} rows, {result['failed']} failed"
        ))
        for error in result['errors']:
            self.stdout.write(f"  {error}")

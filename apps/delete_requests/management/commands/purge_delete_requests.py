"""
Purge resolved delete requests.

Usage:
    python manage.py purge_delete_requests              # Use configured retention
    python manage.py purge_delete_requests --days 90    # Custom retention
    python manage.py purge_delete_requests --dry-run    # Count only
"""

from django.core.management.base import BaseCommand

from apps.delete_requests.services import DeleteRequestService


class Command(BaseCommand):
    help = 'Remove approved/rejected delete requests older than the retention window'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days', type=int, default=None,
            help='Retention in days (default: MHAR_BSI DELETE_REQUEST_RETENTION_DAYS)',
        )
        parser.add_argument(
            '--dry-run', action='store_true',
            help='Only report how many requests would be removed',
        )

    def handle(self, *args, **options):
        service = DeleteRequestService()
        days = service.retention_days(options['days'])

        if options['dry_run']:
            count = service.resolved_before(days).count()
            self.stdout.write(f"{count} resolved delete requests older than {days} days would be removed")
            return

        deleted = service.purge_resolved(days=days)
        self.stdout.write(self.style.SUCCESS(
            f"Removed {deleted} resolved delete requests older than {days} days"
        ))

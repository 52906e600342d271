"""
Create the bootstrap administrator account.

Usage:
    python manage.py ensure_default_admin
"""

import logging

from django.core.management.base import BaseCommand

from apps.authentication.models import ensure_default_admin

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Create the default admin account if it does not exist'

    def handle(self, *args, **options):
        user, created = ensure_default_admin()
        if created:
            logger.info("Default admin account %s created", user.username)
            self.stdout.write(self.style.SUCCESS(
                f"Created default admin '{user.username}' ({user.hospital}). "
                "Change the password after first login."
            ))
        else:
            self.stdout.write(f"Admin account '{user.username}' already exists, nothing to do.")

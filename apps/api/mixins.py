"""
DRF mixins for MHAR-BSI API views.
"""

import logging

logger = logging.getLogger('apps.api')


class AuditLogMixin:
    """
    Mixin that writes an access log line for write operations.

    Field-level change history is recorded by django-auditlog; this adds
    who did what from which address for actions that are not plain model
    saves (approvals, imports, exports, password resets).
    """

    def get_client_ip(self, request):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')

    def log_action(self, request, action, target=None):
        user = getattr(request, 'user', None)
        username = user.username if user is not None and user.is_authenticated else 'anonymous'
        logger.info(
            '%s %s%s from %s',
            username,
            action,
            f' {target}' if target is not None else '',
            self.get_client_ip(request),
        )

"""
PHI-safe exception handler for the MHAR-BSI API.

Strips potentially patient-identifying information from error responses
while preserving useful debugging context for developers.
"""

import logging

from rest_framework.exceptions import NotAuthenticated
from rest_framework.views import exception_handler

logger = logging.getLogger('apps.api')

NOT_LOGGED_IN = '未登入'

# Field names that might contain patient or account identifiers
PHI_FIELDS = frozenset({
    'medical_record_number', 'mrn', 'name', 'patient_name',
    'admission_date', 'positive_culture_date', 'age', 'bw', 'sex',
    'address', 'phone', 'email', 'line_id',
    'security_answer', 'ip_address',
})


def phi_safe_exception_handler(exc, context):
    """
    Custom exception handler that prevents PHI leakage in error responses.

    - Uses DRF's default handler for standard error formatting
    - Replaces authentication errors with the client's "not logged in" message
    - Scrubs any PHI field names from validation error details
    - Logs the full error server-side for debugging
    """
    response = exception_handler(exc, context)

    if response is not None:
        # Log full error details server-side
        view = context.get('view')
        view_name = view.__class__.__name__ if view else 'unknown'
        logger.warning(
            'API error in %s: %s (status %s)',
            view_name, exc, response.status_code,
        )

        if isinstance(exc, NotAuthenticated):
            response.data = {'detail': NOT_LOGGED_IN}

        # Scrub PHI from validation error details
        if isinstance(response.data, dict):
            _scrub_phi_fields(response.data)

    return response


def _scrub_phi_fields(data):
    """Remove PHI field values from error detail dicts."""
    if not isinstance(data, dict):
        return
    for key in list(data.keys()):
        if key.lower() in PHI_FIELDS:
            data[key] = ['此欄位有誤']


def first_error_message(errors, default='資料格式錯誤'):
    """Flatten serializer.errors into the single message the client displays."""
    if isinstance(errors, dict):
        for value in errors.values():
            message = first_error_message(value, default=None)
            if message:
                return message
    elif isinstance(errors, (list, tuple)):
        for value in errors:
            message = first_error_message(value, default=None)
            if message:
                return message
    elif errors:
        return str(errors)
    return default

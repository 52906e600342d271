"""Filters for the delete request API."""

import django_filters

from apps.delete_requests.models import DeleteRequest, DeleteRequestStatus


class DeleteRequestFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=DeleteRequestStatus.choices)
    medical_record_number = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = DeleteRequest
        fields = ['status', 'medical_record_number']

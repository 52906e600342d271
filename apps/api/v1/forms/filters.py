"""Filters for the case report form API."""

import django_filters

from apps.case_reports.models import Submission, DataStatus


class SubmissionFilter(django_filters.FilterSet):
    data_status = django_filters.ChoiceFilter(choices=DataStatus.choices)
    medical_record_number = django_filters.CharFilter(lookup_expr='icontains')
    # Dates are ISO strings, so lexical comparison is chronological
    admission_after = django_filters.CharFilter(field_name='admission_date', lookup_expr='gte')
    admission_before = django_filters.CharFilter(field_name='admission_date', lookup_expr='lte')
    hospital = django_filters.CharFilter(field_name='form_data__hospital')
    pathogen = django_filters.CharFilter(field_name='form_data__pathogen')
    username = django_filters.CharFilter(field_name='user__username')

    class Meta:
        model = Submission
        fields = [
            'data_status', 'medical_record_number', 'admission_after',
            'admission_before', 'hospital', 'pathogen', 'username',
        ]

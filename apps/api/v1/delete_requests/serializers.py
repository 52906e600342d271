"""Serializers for the delete request API."""

from rest_framework import serializers

from apps.delete_requests.models import DeleteRequest

MISSING_SUBMISSION_ID = '缺少submission_id'


class DeleteRequestSerializer(serializers.ModelSerializer):
    requester = serializers.CharField(source='requester.username', default=None, read_only=True)
    requester_hospital = serializers.CharField(
        source='requester.hospital', default=None, read_only=True,
    )
    resolved_by = serializers.CharField(source='resolved_by.username', default=None, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = DeleteRequest
        fields = [
            'id', 'submission', 'medical_record_number', 'admission_date',
            'record_time', 'request_reason', 'status', 'status_display',
            'reject_reason', 'requester', 'requester_hospital',
            'resolved_by', 'resolved_at', 'created_at',
        ]
        read_only_fields = fields


class DeleteRequestCreateSerializer(serializers.Serializer):
    """Input for filing a delete request."""
    submission_id = serializers.IntegerField(
        error_messages={
            'required': MISSING_SUBMISSION_ID,
            'null': MISSING_SUBMISSION_ID,
            'invalid': MISSING_SUBMISSION_ID,
        },
    )
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class DeleteRequestRejectSerializer(serializers.Serializer):
    """Input for rejecting a delete request."""
    reason = serializers.CharField(required=False, allow_blank=True, default='')

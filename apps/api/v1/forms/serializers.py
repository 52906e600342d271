"""Serializers for the case report form API."""

from rest_framework import serializers

from apps.case_reports.form_schema import malformed_fields
from apps.case_reports.models import (
    Submission, SubmissionComment, DataStatus,
    ADMISSION_DATE_PATTERN, ADMISSION_DATE_INVALID,
    MEDICAL_RECORD_NUMBER_MAX_LENGTH, MEDICAL_RECORD_NUMBER_TOO_LONG,
)
from apps.delete_requests.models import DeleteRequestStatus

REQUIRED = '缺少必要欄位'


class PendingDeleteField(serializers.ReadOnlyField):
    """Uses the has_pending_delete annotation when the queryset carries it."""

    def __init__(self, **kwargs):
        kwargs['source'] = '*'
        super().__init__(**kwargs)

    def to_representation(self, obj):
        annotated = getattr(obj, 'has_pending_delete', None)
        if annotated is not None:
            return bool(annotated)
        return obj.delete_requests.filter(status=DeleteRequestStatus.PENDING).exists()


class SubmissionListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list views (no form document)."""
    username = serializers.CharField(source='user.username', default='', read_only=True)
    user_hospital = serializers.CharField(source='user.hospital', default='', read_only=True)
    hospital = serializers.CharField(read_only=True)
    pathogen = serializers.CharField(read_only=True)
    has_pending_delete = PendingDeleteField()

    class Meta:
        model = Submission
        fields = [
            'id', 'medical_record_number', 'admission_date',
            'hospital', 'pathogen', 'data_status', 'update_count',
            'username', 'user_hospital', 'has_pending_delete',
            'created_at', 'updated_at',
        ]


class SubmissionDetailSerializer(SubmissionListSerializer):
    """Full serializer including the form document."""

    class Meta(SubmissionListSerializer.Meta):
        fields = SubmissionListSerializer.Meta.fields + ['user', 'form_data']


class FormDocumentField(serializers.JSONField):
    default_error_messages = {
        'invalid': '表單資料格式錯誤',
        'malformed': '表單資料格式錯誤: {fields}',
    }

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if not isinstance(value, dict):
            self.fail('invalid')
        bad = malformed_fields(value)
        if bad:
            self.fail('malformed', fields=', '.join(bad))
        return value


class SubmissionCreateSerializer(serializers.Serializer):
    """Input for creating a submission."""
    medical_record_number = serializers.CharField(
        max_length=MEDICAL_RECORD_NUMBER_MAX_LENGTH,
        error_messages={
            'required': REQUIRED, 'blank': REQUIRED,
            'max_length': MEDICAL_RECORD_NUMBER_TOO_LONG,
        },
    )
    admission_date = serializers.RegexField(
        ADMISSION_DATE_PATTERN,
        error_messages={'required': REQUIRED, 'blank': REQUIRED, 'invalid': ADMISSION_DATE_INVALID},
    )
    form_data = FormDocumentField(error_messages={'required': REQUIRED})
    data_status = serializers.ChoiceField(
        choices=DataStatus.choices, required=False, default=DataStatus.INCOMPLETE,
    )


class SubmissionUpdateSerializer(serializers.Serializer):
    """Input for PUT/PATCH; the natural key cannot change."""
    form_data = FormDocumentField(error_messages={'required': '缺少表單資料'})
    data_status = serializers.ChoiceField(
        choices=DataStatus.choices, required=False, default=DataStatus.INCOMPLETE,
    )


class CommentSerializer(serializers.ModelSerializer):
    author = serializers.CharField(source='author.username', default=None, read_only=True)
    author_hospital = serializers.CharField(source='author.hospital', default=None, read_only=True)

    class Meta:
        model = SubmissionComment
        fields = ['id', 'author', 'author_hospital', 'body', 'created_at']
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {
            'body': {'error_messages': {'required': '留言內容不可空白', 'blank': '留言內容不可空白'}},
        }

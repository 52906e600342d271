"""Serializers for the user management API."""

from rest_framework import serializers

from apps.authentication.models import User, Hospital

from ..auth.serializers import REQUIRED, new_password_field

HOSPITAL_ERRORS = {'required': REQUIRED, 'invalid_choice': '無效的醫院選項'}


class ManagedUserSerializer(serializers.ModelSerializer):
    submission_count = serializers.IntegerField(read_only=True, default=0)
    is_locked = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'hospital', 'role', 'email',
            'display_name', 'phone', 'address', 'gender', 'line_id',
            'is_active', 'is_locked', 'submission_count',
            'date_joined', 'last_login',
        ]
        read_only_fields = fields

    def get_is_locked(self, obj):
        return obj.is_account_locked()


class UserCreateSerializer(serializers.Serializer):
    """Admin-created accounts are always regular users."""
    username = serializers.CharField(
        max_length=150, error_messages={'required': REQUIRED, 'blank': REQUIRED},
    )
    password = new_password_field(message='密碼至少需要6個字元', required_message=REQUIRED)
    hospital = serializers.ChoiceField(choices=Hospital.choices, error_messages=HOSPITAL_ERRORS)
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    display_name = serializers.CharField(required=False, allow_blank=True, default='', max_length=100)
    phone = serializers.CharField(required=False, allow_blank=True, default='', max_length=30)


class UserUpdateSerializer(serializers.Serializer):
    hospital = serializers.ChoiceField(
        choices=Hospital.choices, required=False, error_messages=HOSPITAL_ERRORS,
    )
    email = serializers.EmailField(required=False, allow_blank=True)
    display_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    gender = serializers.CharField(required=False, allow_blank=True, max_length=10)
    line_id = serializers.CharField(required=False, allow_blank=True, max_length=100)
    is_active = serializers.BooleanField(required=False)
    new_password = new_password_field(required=False)


class PasswordResetSerializer(serializers.Serializer):
    new_password = new_password_field()

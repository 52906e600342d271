"""Serializers for the Auth API."""

from django.conf import settings
from rest_framework import serializers

from apps.authentication.models import User, Hospital

REQUIRED = '請填寫所有必要欄位'


def _min_password_length():
    return getattr(settings, 'MHAR_BSI', {}).get('PASSWORD_MIN_LENGTH', 6)


def new_password_field(message='新密碼至少需要6個字元', required_message=None, **kwargs):
    missing = required_message or message
    return serializers.CharField(
        write_only=True,
        trim_whitespace=False,
        min_length=_min_password_length(),
        error_messages={
            'required': missing,
            'blank': missing,
            'min_length': message,
        },
        **kwargs,
    )


class UserProfileSerializer(serializers.ModelSerializer):
    """Current user profile serializer (read)."""

    class Meta:
        model = User
        fields = [
            'id', 'username', 'hospital', 'role', 'email',
            'display_name', 'phone', 'address', 'gender', 'line_id',
            'security_question',
        ]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.Serializer):
    """Input for PATCH /auth/me/."""
    email = serializers.EmailField(required=False, allow_blank=True)
    display_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    gender = serializers.CharField(required=False, allow_blank=True, max_length=10)
    line_id = serializers.CharField(required=False, allow_blank=True, max_length=100)
    security_question = serializers.CharField(required=False, allow_blank=True, max_length=255)
    security_answer = serializers.CharField(required=False, allow_blank=True, write_only=True)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(
        trim_whitespace=False,
        error_messages={'required': '請輸入目前密碼和新密碼', 'blank': '請輸入目前密碼和新密碼'},
    )
    new_password = new_password_field()


class RegisterSerializer(serializers.Serializer):
    """Self-registration; accounts created this way always get the user role."""
    username = serializers.CharField(
        max_length=150,
        error_messages={'required': REQUIRED, 'blank': REQUIRED},
    )
    password = new_password_field(message='密碼至少需要6個字元', required_message=REQUIRED)
    hospital = serializers.ChoiceField(
        choices=Hospital.choices,
        error_messages={'required': REQUIRED, 'invalid_choice': '無效的醫院選項'},
    )
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    display_name = serializers.CharField(required=False, allow_blank=True, default='', max_length=100)
    phone = serializers.CharField(required=False, allow_blank=True, default='', max_length=30)
    address = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)
    gender = serializers.CharField(required=False, allow_blank=True, default='', max_length=10)
    line_id = serializers.CharField(required=False, allow_blank=True, default='', max_length=100)
    security_question = serializers.CharField(
        max_length=255, error_messages={'required': REQUIRED, 'blank': REQUIRED},
    )
    security_answer = serializers.CharField(
        write_only=True, error_messages={'required': REQUIRED, 'blank': REQUIRED},
    )


class ForgotUsernameSerializer(serializers.Serializer):
    email = serializers.EmailField(error_messages={'required': REQUIRED, 'blank': REQUIRED})
    phone = serializers.CharField(error_messages={'required': REQUIRED, 'blank': REQUIRED})


class ResetPasswordSerializer(serializers.Serializer):
    username = serializers.CharField(error_messages={'required': REQUIRED, 'blank': REQUIRED})
    security_answer = serializers.CharField(error_messages={'required': REQUIRED, 'blank': REQUIRED})
    new_password = new_password_field()

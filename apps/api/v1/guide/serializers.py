"""Serializers for the project guide API."""

from rest_framework import serializers

from apps.project_guide.models import ProjectGuide


class ProjectGuideSerializer(serializers.ModelSerializer):
    updated_by = serializers.CharField(source='updated_by.username', default=None, read_only=True)

    class Meta:
        model = ProjectGuide
        fields = ['content', 'updated_by', 'updated_at']
        read_only_fields = ['updated_by', 'updated_at']
        extra_kwargs = {
            'content': {'allow_blank': True, 'required': True,
                        'error_messages': {'required': '缺少內容'}},
        }

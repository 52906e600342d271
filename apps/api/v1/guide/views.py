"""View for the project guide API."""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.api.exceptions import first_error_message
from apps.api.mixins import AuditLogMixin
from apps.api.permissions import IsStudyUser, CanEditGuide
from apps.api.throttling import WriteRateThrottle
from apps.project_guide.models import ProjectGuide

from .serializers import ProjectGuideSerializer


class ProjectGuideView(AuditLogMixin, APIView):
    """
    GET /api/v1/guide/  Read the guide (any account)
    PUT /api/v1/guide/  Replace the guide content (administrators)
    """

    def get_permissions(self):
        if self.request.method == 'PUT':
            return [CanEditGuide()]
        return [IsStudyUser()]

    def get_throttles(self):
        if self.request.method == 'PUT':
            return [WriteRateThrottle()]
        return super().get_throttles()

    def get(self, request):
        return Response(ProjectGuideSerializer(ProjectGuide.load()).data)

    def put(self, request):
        guide = ProjectGuide.load()
        serializer = ProjectGuideSerializer(guide, data=request.data)
        if not serializer.is_valid():
            return Response(
                {'detail': first_error_message(serializer.errors)},
                status=status.HTTP_400_BAD_REQUEST,
            )
        serializer.save(updated_by=request.user)
        self.log_action(request, 'updated project guide')
        return Response({'message': '說明已更新', **serializer.data})

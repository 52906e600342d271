"""View for the dashboard statistics API."""

from rest_framework import serializers, status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.api.exceptions import first_error_message
from apps.api.permissions import IsStudyUser
from apps.api.throttling import ReadRateThrottle
from apps.case_reports.services import CaseReportService, ALL, MY_HOSPITAL


class StatisticsQuerySerializer(serializers.Serializer):
    pathogen_scope = serializers.ChoiceField(
        choices=[MY_HOSPITAL, ALL], required=False, default=MY_HOSPITAL,
        error_messages={'invalid_choice': '無效的統計範圍'},
    )
    pathogen_hospital = serializers.CharField(required=False, default=ALL)
    completion_hospital = serializers.CharField(required=False, default=ALL)


class StatisticsView(APIView):
    """
    GET /api/v1/statistics/

    Non-admins pick pathogen_scope=my_hospital|all; admins may narrow the
    pathogen and completion charts with pathogen_hospital / completion_hospital.
    """

    permission_classes = [IsStudyUser]
    throttle_classes = [ReadRateThrottle]

    def get(self, request):
        serializer = StatisticsQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(
                {'detail': first_error_message(serializer.errors)},
                status=status.HTTP_400_BAD_REQUEST,
            )
        stats = CaseReportService().statistics(request.user, **serializer.validated_data)
        return Response(stats)

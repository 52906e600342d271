"""View for the CSV export API."""

from django.http import HttpResponse
from django.utils.http import content_disposition_header
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.api.mixins import AuditLogMixin
from apps.api.permissions import IsStudyUser
from apps.api.throttling import ReadRateThrottle
from apps.case_reports.csv_export import (
    build_export,
    export_filename,
    select_rows,
)
from apps.case_reports.exceptions import NothingToExport
from apps.case_reports.services import CaseReportService

FILTER_PARAMS = (
    'ids', 'admission_start', 'admission_end', 'culture_start', 'culture_end',
    'hospital', 'pathogens', 'mrn',
)


class ExportCSVView(AuditLogMixin, APIView):
    """
    GET /api/v1/export/csv/  Download visible submissions as CSV.

    Query params: ids, admission_start, admission_end, culture_start,
    culture_end, hospital, pathogens (comma list), mrn.
    """

    permission_classes = [IsStudyUser]
    throttle_classes = [ReadRateThrottle]

    def get(self, request):
        filters = {
            name: request.query_params.get(name)
            for name in FILTER_PARAMS
            if request.query_params.get(name)
        }
        submissions = CaseReportService().visible_to(request.user)

        try:
            rows = select_rows(submissions, filters)
        except NothingToExport as e:
            return Response({'detail': e.message}, status=status.HTTP_404_NOT_FOUND)

        self.log_action(request, 'exported CSV', f'({len(rows)} rows)')
        response = HttpResponse(build_export(rows), content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = content_disposition_header(True, export_filename())
        return response

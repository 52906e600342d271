"""ViewSet for the case report form API."""

from django.http import Http404, HttpResponse
from django.utils.http import content_disposition_header
from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from apps.api.exceptions import first_error_message
from apps.api.mixins import AuditLogMixin
from apps.api.permissions import IsSubmissionOwnerOrAdmin, DENIED_MESSAGE
from apps.api.throttling import WriteRateThrottle
from apps.case_reports import csv_import
from apps.case_reports.exceptions import DuplicateSubmission, ImportFormatError
from apps.case_reports.models import Submission, SubmissionComment
from apps.case_reports.services import CaseReportService

from .serializers import (
    SubmissionListSerializer,
    SubmissionDetailSerializer,
    SubmissionCreateSerializer,
    SubmissionUpdateSerializer,
    CommentSerializer,
)
from .filters import SubmissionFilter

NOT_FOUND = '找不到資料'


class SubmissionViewSet(AuditLogMixin,
                        mixins.ListModelMixin,
                        mixins.RetrieveModelMixin,
                        viewsets.GenericViewSet):
    """
    Case report form API.

    list:            GET    /api/v1/forms/
    create:          POST   /api/v1/forms/
    detail:          GET    /api/v1/forms/{id}/
    update:          PUT    /api/v1/forms/{id}/   (replace form document)
    partial_update:  PATCH  /api/v1/forms/{id}/   (merge into form document)
    destroy:         DELETE /api/v1/forms/{id}/   (admins only)
    check:           GET    /api/v1/forms/check/?medical_record_number=&admission_date=
    comments:        GET/POST /api/v1/forms/{id}/comments/
    delete_comment:  DELETE /api/v1/forms/{id}/comments/{comment_id}/
    import_csv:      POST   /api/v1/forms/import/
    import_template: GET    /api/v1/forms/import-template/
    """

    filterset_class = SubmissionFilter
    permission_classes = [IsSubmissionOwnerOrAdmin]

    service = CaseReportService()

    def get_queryset(self):
        if self.action == 'list':
            return self.service.visible_to(self.request.user)
        # Detail routes resolve every submission so non-owners get 403, not 404
        return Submission.objects.select_related('user')

    def get_object(self):
        try:
            return super().get_object()
        except Http404:
            raise NotFound(NOT_FOUND)

    def get_serializer_class(self):
        if self.action == 'list':
            return SubmissionListSerializer
        return SubmissionDetailSerializer

    def get_throttles(self):
        if self.request.method not in ('GET', 'HEAD', 'OPTIONS'):
            return [WriteRateThrottle()]
        return super().get_throttles()

    def _invalid(self, serializer):
        return Response(
            {'detail': first_error_message(serializer.errors)},
            status=status.HTTP_400_BAD_REQUEST,
        )

    def create(self, request):
        serializer = SubmissionCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer)

        data = serializer.validated_data
        form_data = dict(data['form_data'])
        form_data.setdefault('hospital', request.user.hospital)
        try:
            submission = self.service.create(
                user=request.user,
                medical_record_number=data['medical_record_number'],
                admission_date=data['admission_date'],
                form_data=form_data,
                data_status=data['data_status'],
            )
        except DuplicateSubmission as e:
            return Response(
                {'detail': e.message, 'existing_id': e.existing_id},
                status=status.HTTP_409_CONFLICT,
            )

        return Response(
            {'id': submission.pk, 'message': '資料已儲存'},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, pk=None):
        return self._save(request, merge=False)

    def partial_update(self, request, pk=None):
        return self._save(request, merge=True)

    def _save(self, request, merge):
        serializer = SubmissionUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer)

        submission = self.get_object()
        form_data = serializer.validated_data['form_data']
        if merge:
            form_data = {**(submission.form_data or {}), **form_data}
        self.service.update(submission, form_data, serializer.validated_data['data_status'])
        return Response({'message': '資料已更新', 'update_count': submission.update_count})

    def destroy(self, request, pk=None):
        if not request.user.is_admin_role():
            return Response(
                {
                    'detail': '非管理員無法直接刪除，請使用刪除申請功能',
                    'require_delete_request': True,
                },
                status=status.HTTP_403_FORBIDDEN,
            )
        submission = self.get_object()
        self.log_action(request, 'deleted submission', submission.pk)
        self.service.delete(submission, deleted_by=request.user)
        return Response({'message': '資料已刪除'})

    @action(detail=False, methods=['get'])
    def check(self, request):
        mrn = request.query_params.get('medical_record_number', '').strip()
        admission_date = request.query_params.get('admission_date', '').strip()
        if not mrn or not admission_date:
            return Response({'detail': '缺少必要欄位'}, status=status.HTTP_400_BAD_REQUEST)

        submission = self.service.find_existing(request.user, mrn, admission_date)
        if submission is None:
            return Response({'exists': False})
        return Response({
            'exists': True,
            'submission': SubmissionDetailSerializer(submission).data,
        })

    @action(detail=True, methods=['get', 'post'])
    def comments(self, request, pk=None):
        submission = self.get_object()
        if request.method == 'GET':
            qs = submission.comments.select_related('author')
            return Response(CommentSerializer(qs, many=True).data)

        serializer = CommentSerializer(data=request.data)
        if not serializer.is_valid():
            return self._invalid(serializer)
        comment = self.service.add_comment(
            submission, request.user, serializer.validated_data['body'],
        )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['delete'],
            url_path=r'comments/(?P<comment_id>[0-9]+)')
    def delete_comment(self, request, pk=None, comment_id=None):
        submission = self.get_object()
        comment = SubmissionComment.objects.filter(
            pk=comment_id, submission=submission,
        ).first()
        if comment is None:
            return Response({'detail': '找不到留言'}, status=status.HTTP_404_NOT_FOUND)
        if not self.service.can_delete_comment(comment, request.user):
            return Response({'detail': DENIED_MESSAGE}, status=status.HTTP_403_FORBIDDEN)
        comment.delete()
        return Response({'message': '留言已刪除'})

    @action(detail=False, methods=['post'], url_path='import',
            parser_classes=[MultiPartParser, FormParser])
    def import_csv(self, request):
        upload = request.FILES.get('file')
        if upload is None:
            return Response({'detail': '請選擇 CSV 檔案'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            text = upload.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            return Response(
                {'detail': '檔案編碼錯誤，請使用 UTF-8 編碼的 CSV 檔案'},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = csv_import.import_csv(request.user, text, service=self.service)
        except ImportFormatError as e:
            return Response({'detail': e.message}, status=status.HTTP_400_BAD_REQUEST)

        self.log_action(
            request, 'imported CSV',
            f"({result['success']} created, {result['failed']} failed)",
        )
        return Response(result)

    @action(detail=False, methods=['get'], url_path='import-template')
    def import_template(self, request):
        response = HttpResponse(csv_import.import_template(), content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = content_disposition_header(True, csv_import.TEMPLATE_FILENAME)
        return response

"""ViewSet for the delete request API."""

from django.http import Http404
from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from apps.api.exceptions import first_error_message
from apps.api.mixins import AuditLogMixin
from apps.api.permissions import IsStudyUser, CanReviewDeleteRequests, DENIED_MESSAGE
from apps.api.throttling import WriteRateThrottle
from apps.case_reports.exceptions import DeleteRequestAlreadyResolved, DeleteRequestConflict
from apps.case_reports.models import Submission
from apps.delete_requests.services import DeleteRequestService, SubmissionMissing

from .serializers import (
    DeleteRequestSerializer,
    DeleteRequestCreateSerializer,
    DeleteRequestRejectSerializer,
)
from .filters import DeleteRequestFilter


class DeleteRequestViewSet(AuditLogMixin,
                           mixins.ListModelMixin,
                           viewsets.GenericViewSet):
    """
    Delete request workflow API.

    list:          GET      /api/v1/delete-requests/   (admins see all, users their own)
    create:        POST     /api/v1/delete-requests/
    destroy:       DELETE   /api/v1/delete-requests/{id}/   (admins; resolved only)
    approve:       PUT/POST /api/v1/delete-requests/{id}/approve/
    reject:        PUT/POST /api/v1/delete-requests/{id}/reject/
    pending_count: GET      /api/v1/delete-requests/pending-count/
    """

    serializer_class = DeleteRequestSerializer
    filterset_class = DeleteRequestFilter
    permission_classes = [IsStudyUser]

    service = DeleteRequestService()

    def get_queryset(self):
        return self.service.visible_to(self.request.user)

    def get_object(self):
        try:
            return super().get_object()
        except Http404:
            raise NotFound('找不到該刪除申請')

    def get_throttles(self):
        if self.request.method not in ('GET', 'HEAD', 'OPTIONS'):
            return [WriteRateThrottle()]
        return super().get_throttles()

    def create(self, request):
        serializer = DeleteRequestCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'detail': first_error_message(serializer.errors)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        submission = Submission.objects.filter(
            pk=serializer.validated_data['submission_id'],
        ).first()
        if submission is None:
            return Response({'detail': '找不到該筆資料'}, status=status.HTTP_404_NOT_FOUND)
        if not request.user.can_view_submission(submission):
            return Response({'detail': DENIED_MESSAGE}, status=status.HTTP_403_FORBIDDEN)

        try:
            delete_request = self.service.create(
                request.user, submission, serializer.validated_data['reason'],
            )
        except DeleteRequestConflict as e:
            return Response({'detail': e.message}, status=status.HTTP_409_CONFLICT)

        return Response(
            {
                'id': delete_request.pk,
                'message': '刪除申請已送出，待管理員審核',
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=['put', 'post'],
            permission_classes=[CanReviewDeleteRequests])
    def approve(self, request, pk=None):
        delete_request = self.get_object()
        try:
            self.service.approve(delete_request, request.user)
        except DeleteRequestAlreadyResolved as e:
            return Response({'detail': e.message}, status=status.HTTP_400_BAD_REQUEST)
        except SubmissionMissing:
            return Response({'detail': '找不到要刪除的資料'}, status=status.HTTP_404_NOT_FOUND)

        self.log_action(request, 'approved delete request', delete_request.pk)
        return Response({'message': '已核准刪除申請，資料已刪除'})

    @action(detail=True, methods=['put', 'post'],
            permission_classes=[CanReviewDeleteRequests],
            serializer_class=DeleteRequestRejectSerializer)
    def reject(self, request, pk=None):
        serializer = DeleteRequestRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        delete_request = self.get_object()
        try:
            self.service.reject(delete_request, request.user, serializer.validated_data['reason'])
        except DeleteRequestAlreadyResolved as e:
            return Response({'detail': e.message}, status=status.HTTP_400_BAD_REQUEST)

        self.log_action(request, 'rejected delete request', delete_request.pk)
        return Response({'message': '已拒絕刪除申請'})

    def destroy(self, request, pk=None):
        if not request.user.can_review_delete_requests():
            return Response({'detail': DENIED_MESSAGE}, status=status.HTTP_403_FORBIDDEN)
        delete_request = self.get_object()
        try:
            self.service.discard(delete_request)
        except DeleteRequestConflict as e:
            return Response({'detail': e.message}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'message': '申請記錄已刪除'})

    @action(detail=False, methods=['get'], url_path='pending-count',
            permission_classes=[CanReviewDeleteRequests])
    def pending_count(self, request):
        return Response({'count': self.service.pending_count()})

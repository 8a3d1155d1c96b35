"""
Return views.
"""
from rest_framework import status
from rest_framework.decorators import action

from apps.core.views import ReadOnlyViewSet
from apps.core.mixins import MultiSerializerMixin, StandardResponseMixin
from apps.core.permissions import IsManagerOrAbove, IsWarehouseStaffOrAbove
from .models import ReturnRequest
from .serializers import (
    ReturnRequestListSerializer,
    ReturnRequestDetailSerializer,
    ReturnSubmitSerializer,
    ReturnApproveSerializer,
    ReturnRejectSerializer,
    ReturnProcessSerializer,
    ReturnQuerySerializer,
)
from .services import ReturnWorkflowService

FAILURE_STATUS_CODES = {
    'RETURN_NOT_FOUND': status.HTTP_404_NOT_FOUND,
    'INVALID_TRANSITION': status.HTTP_409_CONFLICT,
    'CONCURRENT_MODIFICATION': status.HTTP_409_CONFLICT,
}


class ReturnRequestViewSet(MultiSerializerMixin, StandardResponseMixin, ReadOnlyViewSet):
    """Return request ViewSet."""
    queryset = ReturnRequest.objects.select_related('requested_by').prefetch_related(
        'lines__material', 'lines__source_location', 'lines__destination_location'
    )
    serializer_class = ReturnRequestListSerializer
    serializer_classes = {
        'list': ReturnRequestListSerializer,
        'retrieve': ReturnRequestDetailSerializer,
        'pending': ReturnRequestListSerializer,
    }
    filterset_fields = ['category', 'status', 'requested_by']
    search_fields = ['code', 'source_document_id', 'reason']
    ordering_fields = ['requested_at', 'total_value']

    def get_permissions(self):
        if self.action in ('approve', 'reject'):
            return [IsManagerOrAbove()]
        if self.action == 'process':
            return [IsWarehouseStaffOrAbove()]
        return super().get_permissions()

    def get_service(self):
        return ReturnWorkflowService()

    def _failure_response(self, result):
        return self.error_response(
            message=result.message,
            data=result.to_dict(),
            status_code=FAILURE_STATUS_CODES.get(result.error_code, status.HTTP_400_BAD_REQUEST)
        )

    def create(self, request, *args, **kwargs):
        """Submit a return request."""
        serializer = ReturnSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_service().submit_return(serializer.validated_data, request.user)
        if not result.success:
            return self._failure_response(result)

        return self.created_response(data=result.to_dict(), message=result.message)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        """Approve a pending return request."""
        serializer = ReturnApproveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_service().approve_return(
            pk,
            request.user,
            notes=serializer.validated_data.get('notes'),
            version=serializer.validated_data.get('version')
        )
        if not result.success:
            return self._failure_response(result)
        return self.success_response(data=result.to_dict(), message=result.message)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        """Reject a pending return request."""
        serializer = ReturnRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_service().reject_return(
            pk,
            request.user,
            reason=serializer.validated_data['reason'],
            version=serializer.validated_data.get('version')
        )
        if not result.success:
            return self._failure_response(result)
        return self.success_response(data=result.to_dict(), message=result.message)

    @action(detail=True, methods=['post'])
    def process(self, request, pk=None):
        """Apply an approved return request to stock."""
        serializer = ReturnProcessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_service().process_return(
            pk,
            request.user,
            notes=serializer.validated_data.get('notes'),
            version=serializer.validated_data.get('version')
        )
        if result.error_code:
            return self._failure_response(result)
        return self.success_response(data=result.to_dict(), message=result.message)

    @action(detail=False, methods=['get'])
    def pending(self, request):
        """Pending return requests, newest first."""
        query = ReturnQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        queryset = self.get_service().get_pending_returns(query.validated_data)
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)

        serializer = self.get_serializer(queryset, many=True)
        return self.success_response(data=serializer.data)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Return counts and values by category, status and material."""
        query = ReturnQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        summary = self.get_service().get_summary(
            date_from=query.validated_data.get('date_from'),
            date_to=query.validated_data.get('date_to')
        )
        return self.success_response(data=summary.to_dict())

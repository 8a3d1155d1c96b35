"""
Inventory views.
Stock browsing and manual adjustments through the ledger.
"""
from rest_framework.decorators import action

from apps.core.views import ReadOnlyViewSet
from apps.core.mixins import StandardResponseMixin
from apps.core.permissions import IsWarehouseStaffOrAbove
from .models import StockBalance, InventoryMovement
from .serializers import (
    StockBalanceSerializer,
    InventoryMovementSerializer,
    StockAdjustmentSerializer,
)
from .services import InventoryService


class StockBalanceViewSet(StandardResponseMixin, ReadOnlyViewSet):
    """Stock balance query ViewSet."""
    queryset = StockBalance.objects.select_related('location', 'material').all()
    serializer_class = StockBalanceSerializer
    filterset_fields = ['location', 'material']
    search_fields = ['material__name', 'material__code']
    ordering_fields = ['quantity', 'updated_at']

    def get_permissions(self):
        if self.action == 'adjust':
            return [IsWarehouseStaffOrAbove()]
        return super().get_permissions()

    @action(detail=False, methods=['post'])
    def adjust(self, request):
        """Adjust stock quantity at a location."""
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        movement_type = 'ADJUST_IN' if data['adjustment_type'] == 'IN' else 'ADJUST_OUT'
        quantity = data['quantity'] if data['adjustment_type'] == 'IN' else -data['quantity']

        new_quantity = InventoryService.adjust_stock(
            location_id=data['location_id'],
            material_id=data['material_id'],
            quantity=quantity,
            movement_type=movement_type,
            reference_type='Adjustment',
            note=data.get('note', ''),
            user=request.user
        )

        return self.success_response(
            message='庫存調整成功',
            data={'new_quantity': new_quantity}
        )


class InventoryMovementViewSet(ReadOnlyViewSet):
    """InventoryMovement query ViewSet."""
    queryset = InventoryMovement.objects.select_related(
        'location', 'material', 'created_by'
    ).all()
    serializer_class = InventoryMovementSerializer
    filterset_fields = ['location', 'material', 'movement_type', 'reference_type', 'reference_id']
    search_fields = ['material__name', 'material__code']
    ordering_fields = ['created_at']

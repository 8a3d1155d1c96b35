"""
Inventory serializers.
"""
from rest_framework import serializers
from .models import StockBalance, InventoryMovement


class StockBalanceSerializer(serializers.ModelSerializer):
    """StockBalance serializer."""
    location_name = serializers.CharField(source='location.name', read_only=True)
    material_name = serializers.CharField(source='material.name', read_only=True)
    material_code = serializers.CharField(source='material.code', read_only=True)

    class Meta:
        model = StockBalance
        fields = [
            'id', 'location', 'location_name',
            'material', 'material_name', 'material_code',
            'quantity', 'version', 'updated_at'
        ]


class InventoryMovementSerializer(serializers.ModelSerializer):
    """InventoryMovement serializer."""
    location_name = serializers.CharField(source='location.name', read_only=True)
    material_name = serializers.CharField(source='material.name', read_only=True)
    type_display = serializers.CharField(source='get_movement_type_display', read_only=True)

    class Meta:
        model = InventoryMovement
        fields = [
            'id', 'location', 'location_name',
            'material', 'material_name',
            'movement_type', 'type_display',
            'quantity', 'balance',
            'reference_type', 'reference_id', 'note',
            'created_by', 'created_at'
        ]


class StockAdjustmentSerializer(serializers.Serializer):
    """Stock adjustment request serializer."""
    location_id = serializers.IntegerField()
    material_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    adjustment_type = serializers.ChoiceField(choices=['IN', 'OUT'])
    note = serializers.CharField(max_length=200, required=False, default='')

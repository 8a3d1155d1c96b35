"""
Material serializers.
"""
from rest_framework import serializers
from .models import Material


class MaterialSerializer(serializers.ModelSerializer):
    """Material serializer."""
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Material
        fields = [
            'id', 'name', 'code', 'description', 'unit',
            'unit_price', 'current_stock', 'allow_returns',
            'status', 'status_display',
            'created_at', 'updated_at'
        ]

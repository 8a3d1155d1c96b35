"""
Location serializers.
"""
from rest_framework import serializers
from .models import Location


class LocationSerializer(serializers.ModelSerializer):
    """Location serializer."""
    type_display = serializers.CharField(source='get_location_type_display', read_only=True)

    class Meta:
        model = Location
        fields = [
            'id', 'name', 'code',
            'location_type', 'type_display', 'address',
            'is_active', 'created_at', 'updated_at'
        ]

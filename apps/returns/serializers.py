"""
Return serializers.
"""
from rest_framework import serializers

from .models import (
    ReturnCategory,
    ReturnLine,
    ReturnRequest,
    SourceDocumentType,
)


class ReturnLineSerializer(serializers.ModelSerializer):
    """ReturnLine serializer."""
    material_name = serializers.CharField(source='material.name', read_only=True)
    material_code = serializers.CharField(source='material.code', read_only=True)
    source_location_name = serializers.CharField(
        source='source_location.name', read_only=True, default=None
    )
    destination_location_name = serializers.CharField(
        source='destination_location.name', read_only=True, default=None
    )
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    line_status_display = serializers.CharField(source='get_line_status_display', read_only=True)

    class Meta:
        model = ReturnLine
        fields = [
            'id', 'material', 'material_name', 'material_code',
            'quantity', 'unit_price', 'subtotal', 'detail_reason',
            'source_location', 'source_location_name',
            'destination_location', 'destination_location_name',
            'line_status', 'line_status_display', 'rejection_note',
            'processed_by', 'processed_at'
        ]


class ReturnRequestListSerializer(serializers.ModelSerializer):
    """ReturnRequest list serializer."""
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    requested_by_name = serializers.CharField(source='requested_by.display_name', read_only=True)
    line_count = serializers.SerializerMethodField()

    class Meta:
        model = ReturnRequest
        fields = [
            'id', 'code', 'category', 'category_display',
            'status', 'status_display', 'total_value',
            'requested_by', 'requested_by_name', 'requested_at',
            'line_count', 'version'
        ]

    def get_line_count(self, obj):
        return len(obj.lines.all())


class ReturnRequestDetailSerializer(serializers.ModelSerializer):
    """ReturnRequest detail serializer."""
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    requested_by_name = serializers.CharField(source='requested_by.display_name', read_only=True)
    lines = ReturnLineSerializer(many=True, read_only=True)

    class Meta:
        model = ReturnRequest
        fields = [
            'id', 'code', 'code_is_fallback', 'category', 'category_display',
            'source_document_id', 'source_document_type',
            'reason', 'notes', 'status', 'status_display', 'total_value',
            'requested_by', 'requested_by_name', 'requested_at',
            'approved_by', 'approved_at', 'approval_notes',
            'rejected_by', 'rejected_at', 'rejection_reason',
            'processed_by', 'processed_at', 'processing_notes',
            'version', 'lines', 'created_at', 'updated_at'
        ]


class ReturnLineInputSerializer(serializers.Serializer):
    """Requested return line."""
    material_id = serializers.IntegerField()
    # Non-positive quantities are reported by line validation
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    detail_reason = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    source_location_id = serializers.IntegerField(required=False, allow_null=True)
    destination_location_id = serializers.IntegerField(required=False, allow_null=True)


class ReturnSubmitSerializer(serializers.Serializer):
    """Return submission serializer."""
    category = serializers.ChoiceField(choices=ReturnCategory.choices)
    source_document_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')
    source_document_type = serializers.ChoiceField(
        choices=SourceDocumentType.choices, required=False, allow_blank=True, default=''
    )
    reason = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    lines = ReturnLineInputSerializer(many=True)

    def validate_lines(self, value):
        if not value:
            raise serializers.ValidationError('退貨單至少需要一筆明細')
        return value


class ReturnApproveSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, allow_null=True)


class ReturnRejectSerializer(serializers.Serializer):
    reason = serializers.CharField()
    version = serializers.IntegerField(required=False, allow_null=True)


class ReturnProcessSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, allow_null=True)


class ReturnQuerySerializer(serializers.Serializer):
    """Query parameters for pending list and summary."""
    category = serializers.ChoiceField(choices=ReturnCategory.choices, required=False)
    requested_by = serializers.IntegerField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

"""
Returns admin configuration.
"""
from django.contrib import admin
from .models import ReturnRequest, ReturnLine, ReturnCodeSequence


class ReturnLineInline(admin.TabularInline):
    model = ReturnLine
    extra = 0
    readonly_fields = ['line_status', 'rejection_note', 'processed_by', 'processed_at']


@admin.register(ReturnRequest)
class ReturnRequestAdmin(admin.ModelAdmin):
    list_display = ['code', 'category', 'status', 'total_value', 'requested_by', 'requested_at']
    list_filter = ['category', 'status', 'requested_at']
    search_fields = ['code', 'source_document_id', 'reason']
    readonly_fields = ['code', 'total_value', 'version', 'code_is_fallback']
    inlines = [ReturnLineInline]
    ordering = ['-requested_at']


@admin.register(ReturnCodeSequence)
class ReturnCodeSequenceAdmin(admin.ModelAdmin):
    list_display = ['prefix', 'period', 'last_number', 'updated_at']
    list_filter = ['prefix']

"""
Inventory admin configuration.
"""
from django.contrib import admin
from .models import StockBalance, InventoryMovement


@admin.register(StockBalance)
class StockBalanceAdmin(admin.ModelAdmin):
    list_display = ['material', 'location', 'quantity', 'version']
    list_filter = ['location']
    search_fields = ['material__name', 'material__code']
    readonly_fields = ['version']


@admin.register(InventoryMovement)
class InventoryMovementAdmin(admin.ModelAdmin):
    list_display = ['material', 'location', 'movement_type', 'quantity', 'balance', 'created_at']
    list_filter = ['movement_type', 'location', 'created_at']
    search_fields = ['material__name', 'material__code']
    ordering = ['-created_at']

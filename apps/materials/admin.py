"""
Material admin configuration.
"""
from django.contrib import admin
from .models import Material


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'unit', 'unit_price', 'current_stock', 'allow_returns', 'status']
    list_filter = ['status', 'allow_returns']
    search_fields = ['code', 'name']

"""
Account admin configuration.
"""
from django.contrib import admin
from .models import User, Role


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'is_active']
    search_fields = ['name', 'code']


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['username', 'display_name', 'email', 'role', 'is_active']
    list_filter = ['role', 'is_active']
    search_fields = ['username', 'display_name', 'email']

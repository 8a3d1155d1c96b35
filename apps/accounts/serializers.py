"""
Account serializers.
"""
from rest_framework import serializers
from .models import User, Role


class RoleSerializer(serializers.ModelSerializer):
    """Role serializer."""
    class Meta:
        model = Role
        fields = ['id', 'name', 'code', 'description', 'is_active']


class UserDetailSerializer(serializers.ModelSerializer):
    """Current user serializer."""
    role = RoleSerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'display_name',
            'role', 'is_active', 'last_login', 'created_at'
        ]

"""
Tests for core permission classes.
"""
import pytest
from unittest.mock import Mock

from apps.core.permissions import (
    IsAuthenticatedAndActive,
    IsManagerOrAbove,
    IsWarehouseStaffOrAbove,
)


@pytest.fixture
def mock_request():
    """Create a mock request object."""
    return Mock()


@pytest.fixture
def mock_view():
    """Create a mock view object."""
    return Mock()


def _user_with_role(code, is_superuser=False):
    return Mock(is_authenticated=True, is_active=True, is_superuser=is_superuser, role=Mock(code=code))


class TestIsAuthenticatedAndActive:
    """Tests for IsAuthenticatedAndActive permission."""

    def test_authenticated_active_user(self, mock_request, mock_view):
        mock_request.user = Mock(is_authenticated=True, is_active=True)
        assert IsAuthenticatedAndActive().has_permission(mock_request, mock_view) is True

    def test_authenticated_inactive_user(self, mock_request, mock_view):
        mock_request.user = Mock(is_authenticated=True, is_active=False)
        assert IsAuthenticatedAndActive().has_permission(mock_request, mock_view) is False

    def test_no_user(self, mock_request, mock_view):
        mock_request.user = None
        assert IsAuthenticatedAndActive().has_permission(mock_request, mock_view) is False


class TestRoleGates:
    """Tests for role based permissions."""

    @pytest.mark.parametrize('code,expected', [
        ('ADMIN', True),
        ('MANAGER', True),
        ('WAREHOUSE', False),
        ('REQUESTER', False),
    ])
    def test_manager_or_above(self, mock_request, mock_view, code, expected):
        mock_request.user = _user_with_role(code)
        assert IsManagerOrAbove().has_permission(mock_request, mock_view) is expected

    @pytest.mark.parametrize('code,expected', [
        ('ADMIN', True),
        ('MANAGER', True),
        ('WAREHOUSE', True),
        ('VIEWER', False),
    ])
    def test_warehouse_staff_or_above(self, mock_request, mock_view, code, expected):
        mock_request.user = _user_with_role(code)
        assert IsWarehouseStaffOrAbove().has_permission(mock_request, mock_view) is expected

    def test_superuser_without_role(self, mock_request, mock_view):
        mock_request.user = Mock(is_authenticated=True, is_superuser=True, role=None)
        assert IsManagerOrAbove().has_permission(mock_request, mock_view) is True

    def test_user_without_role(self, mock_request, mock_view):
        mock_request.user = Mock(is_authenticated=True, is_superuser=False, role=None)
        assert IsManagerOrAbove().has_permission(mock_request, mock_view) is False

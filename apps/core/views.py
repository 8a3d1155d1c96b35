"""
Core views and viewsets for the application.
"""
from rest_framework import viewsets
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.filters import SearchFilter, OrderingFilter

from .pagination import StandardPagination
from .permissions import IsAuthenticatedAndActive


class ReadOnlyViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only ViewSet."""
    pagination_class = StandardPagination
    permission_classes = [IsAuthenticatedAndActive]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

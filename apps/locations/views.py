"""
Location views.
"""
from apps.core.views import ReadOnlyViewSet
from .models import Location
from .serializers import LocationSerializer


class LocationViewSet(ReadOnlyViewSet):
    """Location query ViewSet."""
    queryset = Location.objects.all()
    serializer_class = LocationSerializer
    search_fields = ['name', 'code']
    filterset_fields = ['location_type', 'is_active']
    ordering_fields = ['name', 'code']

"""
Material views.
"""
from apps.core.views import ReadOnlyViewSet
from .models import Material
from .serializers import MaterialSerializer
from .filters import MaterialFilter


class MaterialViewSet(ReadOnlyViewSet):
    """Material query ViewSet."""
    queryset = Material.objects.all()
    serializer_class = MaterialSerializer
    filterset_class = MaterialFilter
    search_fields = ['name', 'code']
    ordering_fields = ['name', 'code', 'current_stock']

"""
Material filters.
"""
from django_filters import rest_framework as filters
from .models import Material


class MaterialFilter(filters.FilterSet):
    """Material filter set."""
    name = filters.CharFilter(lookup_expr='icontains')
    code = filters.CharFilter(lookup_expr='exact')
    min_stock = filters.NumberFilter(field_name='current_stock', lookup_expr='gte')
    max_stock = filters.NumberFilter(field_name='current_stock', lookup_expr='lte')
    status = filters.ChoiceFilter(choices=Material.STATUS_CHOICES)
    is_active = filters.BooleanFilter(method='filter_is_active')

    class Meta:
        model = Material
        fields = ['name', 'code', 'status', 'allow_returns']

    def filter_is_active(self, queryset, name, value):
        if value:
            return queryset.filter(status='ACTIVE')
        return queryset.exclude(status='ACTIVE')

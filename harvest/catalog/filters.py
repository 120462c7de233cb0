import django_filters
from django.db.models import Q
from .models import Item


class ItemFilter(django_filters.FilterSet):
    """Filter for the item list"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(field_name='category', lookup_expr='exact')
    type = django_filters.CharFilter(field_name='type', lookup_expr='iexact')
    active = django_filters.CharFilter(method='filter_active', label='Active')

    class Meta:
        model = Item
        fields = ['search', 'category', 'type', 'active']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(type__icontains=value) | Q(variety__icontains=value))

    def filter_active(self, queryset, name, value):
        """Filter by active status (handles string 'true'/'false')"""
        if value is None or value == '':
            return queryset
        return queryset.filter(is_active=value.lower() == 'true')

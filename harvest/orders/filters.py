import django_filters
from .models import Order


class OrderFilter(django_filters.FilterSet):
    """Filter for the order list"""
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    shift_name = django_filters.CharFilter(field_name='shift_name', lookup_expr='exact')
    delivery_date = django_filters.DateFilter(field_name='delivery_date')
    date_from = django_filters.DateFilter(field_name='delivery_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='delivery_date', lookup_expr='lte')
    logistics_center = django_filters.NumberFilter(field_name='logistics_center_id')
    customer = django_filters.NumberFilter(field_name='customer_id')

    class Meta:
        model = Order
        fields = ['status', 'shift_name', 'delivery_date', 'date_from', 'date_to', 'logistics_center', 'customer']

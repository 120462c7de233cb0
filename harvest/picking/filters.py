import django_filters
from .models import PickerTask


class PickerTaskFilter(django_filters.FilterSet):
    """Status and assignment filters for a shift's task list"""
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    assigned_only = django_filters.BooleanFilter(method='filter_assigned_only', label='Assigned only')
    unassigned_only = django_filters.BooleanFilter(method='filter_unassigned_only', label='Unassigned only')
    picker_user_id = django_filters.NumberFilter(field_name='assigned_picker_id')

    class Meta:
        model = PickerTask
        fields = ['status', 'assigned_only', 'unassigned_only', 'picker_user_id']

    def filter_assigned_only(self, queryset, name, value):
        return queryset.filter(assigned_picker__isnull=False) if value else queryset

    def filter_unassigned_only(self, queryset, name, value):
        # assigned_only wins when both are set
        if not value or self.form.cleaned_data.get('assigned_only'):
            return queryset
        return queryset.filter(assigned_picker__isnull=True)

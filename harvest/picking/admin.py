from django.contrib import admin
from .models import PickerTask


@admin.register(PickerTask)
class PickerTaskAdmin(admin.ModelAdmin):
    list_display = ['id', 'logistics_center', 'shift_date', 'shift_name', 'order', 'status', 'priority', 'assigned_picker']
    list_filter = ['status', 'shift_name', 'logistics_center']
    search_fields = ['order__id', 'assigned_picker__username']
    date_hierarchy = 'shift_date'
    readonly_fields = ['total_est_kg', 'total_liters', 'total_est_units', 'history', 'created_at', 'updated_at']
    raw_id_fields = ['order', 'assigned_picker', 'created_by']

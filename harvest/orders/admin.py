from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ['item']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'customer', 'logistics_center', 'delivery_date', 'shift_name', 'status', 'created_at']
    list_filter = ['status', 'shift_name', 'logistics_center']
    search_fields = ['customer__username', 'delivery_address']
    date_hierarchy = 'delivery_date'
    inlines = [OrderItemInline]

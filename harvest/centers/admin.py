from django.contrib import admin
from .models import LogisticsCenter, ShiftConfig


class ShiftConfigInline(admin.TabularInline):
    model = ShiftConfig
    extra = 0


@admin.register(LogisticsCenter)
class LogisticsCenterAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'timezone', 'is_active', 'created_at']
    list_filter = ['is_active', 'timezone']
    search_fields = ['name', 'code']
    ordering = ['name']
    inlines = [ShiftConfigInline]


@admin.register(ShiftConfig)
class ShiftConfigAdmin(admin.ModelAdmin):
    list_display = ['logistics_center', 'name', 'timezone', 'general_start_min', 'general_end_min', 'slot_size_min']
    list_filter = ['name', 'logistics_center']
    ordering = ['logistics_center', 'general_start_min']

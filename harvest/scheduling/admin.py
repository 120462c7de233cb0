from django.contrib import admin
from .models import Schedule, MonthlySchedule


class MonthlyScheduleInline(admin.TabularInline):
    model = MonthlySchedule
    extra = 0


@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'logistics_center', 'updated_at']
    list_filter = ['role', 'logistics_center']
    search_fields = ['user__username']
    inlines = [MonthlyScheduleInline]


@admin.register(MonthlySchedule)
class MonthlyScheduleAdmin(admin.ModelAdmin):
    list_display = ['schedule', 'schedule_type', 'month', 'updated_at']
    list_filter = ['schedule_type', 'month']
    search_fields = ['schedule__user__username', 'month']

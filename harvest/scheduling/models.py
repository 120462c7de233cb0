from django.conf import settings
from django.db import models


class Schedule(models.Model):
    """A worker's schedule at one logistics center"""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='schedules')
    role = models.CharField(max_length=32, db_index=True)
    logistics_center = models.ForeignKey(
        'centers.LogisticsCenter', on_delete=models.CASCADE, null=True, blank=True, related_name='schedules'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Schedule {self.user_id} ({self.role})"

    class Meta:
        db_table = 'schedules'
        unique_together = [['user', 'logistics_center']]
        indexes = [
            models.Index(fields=['role', 'logistics_center'], name='schedule_role_center_idx'),
        ]


class MonthlySchedule(models.Model):
    """One month of per-day shift masks (see bitmaps.SHIFT_BITS)"""
    SCHEDULE_TYPE_CHOICES = [
        ('active', 'Active'),
        ('standby', 'Standby'),
    ]

    schedule = models.ForeignKey(Schedule, on_delete=models.CASCADE, related_name='months')
    schedule_type = models.CharField(max_length=10, choices=SCHEDULE_TYPE_CHOICES)
    month = models.CharField(max_length=7, help_text="YYYY-MM")
    bitmap = models.JSONField(default=list)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.schedule_id} {self.schedule_type} {self.month}"

    def value_for_day(self, day_index):
        if 0 <= day_index < len(self.bitmap):
            return int(self.bitmap[day_index] or 0)
        return 0

    class Meta:
        db_table = 'monthly_schedules'
        unique_together = [['schedule', 'schedule_type', 'month']]
        ordering = ['month']

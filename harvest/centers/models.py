from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

MINUTES_IN_DAY = 1440

minute_validators = [MinValueValidator(0), MaxValueValidator(MINUTES_IN_DAY)]


def default_timezone():
    return settings.HARVEST_DEFAULT_TZ


class LogisticsCenter(models.Model):
    """Warehouse/hub that workers, orders and shifts belong to"""
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True)
    address = models.TextField(blank=True)
    timezone = models.CharField(max_length=64, default=default_timezone)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'logistics_centers'


class ShiftConfig(models.Model):
    """Per-center shift windows, stored as minutes since local midnight"""
    SHIFT_NAME_CHOICES = [
        ('morning', 'Morning'),
        ('afternoon', 'Afternoon'),
        ('evening', 'Evening'),
        ('night', 'Night'),
    ]

    logistics_center = models.ForeignKey(LogisticsCenter, on_delete=models.CASCADE, related_name='shift_configs')
    name = models.CharField(max_length=20, choices=SHIFT_NAME_CHOICES)
    timezone = models.CharField(max_length=64, default=default_timezone)

    general_start_min = models.PositiveIntegerField(validators=minute_validators)
    general_end_min = models.PositiveIntegerField(validators=minute_validators)
    industrial_deliverer_start_min = models.PositiveIntegerField(validators=minute_validators)
    industrial_deliverer_end_min = models.PositiveIntegerField(validators=minute_validators)
    deliverer_start_min = models.PositiveIntegerField(validators=minute_validators)
    deliverer_end_min = models.PositiveIntegerField(validators=minute_validators)
    delivery_slot_start_min = models.PositiveIntegerField(validators=minute_validators)
    delivery_slot_end_min = models.PositiveIntegerField(validators=minute_validators)
    slot_size_min = models.PositiveIntegerField(default=30, validators=[MinValueValidator(1)])

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.logistics_center.code}/{self.name}"

    class Meta:
        db_table = 'shift_configs'
        unique_together = [['logistics_center', 'name']]
        indexes = [
            models.Index(fields=['logistics_center', 'name'], name='shift_cfg_center_name_idx'),
        ]

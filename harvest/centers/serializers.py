from rest_framework import serializers
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from .models import LogisticsCenter, ShiftConfig


def validate_timezone_name(value):
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise serializers.ValidationError(f"Unknown timezone: {value}")
    return value


class LogisticsCenterSerializer(serializers.ModelSerializer):
    class Meta:
        model = LogisticsCenter
        fields = ['id', 'name', 'code', 'address', 'timezone', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_timezone(self, value):
        return validate_timezone_name(value)


class ShiftConfigSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShiftConfig
        fields = [
            'id', 'logistics_center', 'name', 'timezone',
            'general_start_min', 'general_end_min',
            'industrial_deliverer_start_min', 'industrial_deliverer_end_min',
            'deliverer_start_min', 'deliverer_end_min',
            'delivery_slot_start_min', 'delivery_slot_end_min',
            'slot_size_min', 'created_at', 'updated_at',
        ]
        read_only_fields = ['logistics_center', 'created_at', 'updated_at']
        # Upserts are keyed on (center, name); uniqueness is handled by the view
        validators = []

    def validate_timezone(self, value):
        return validate_timezone_name(value)

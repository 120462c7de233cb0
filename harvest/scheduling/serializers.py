from rest_framework import serializers
from .models import MonthlySchedule


class TargetSerializer(serializers.Serializer):
    """Optional target fields; only honoured for managers"""
    user_id = serializers.IntegerField(required=False)
    role = serializers.CharField(required=False, allow_blank=False)
    logistics_center = serializers.IntegerField(required=False)


class MonthScheduleWriteSerializer(TargetSerializer):
    month = serializers.CharField()
    schedule_type = serializers.ChoiceField(choices=MonthlySchedule.SCHEDULE_TYPE_CHOICES)
    bitmap = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)
    overwrite_existing = serializers.BooleanField(required=False, default=False)


class PlanSerializer(TargetSerializer):
    year = serializers.IntegerField(min_value=1970, max_value=9999)
    month = serializers.IntegerField(min_value=1, max_value=12)
    slot_count = serializers.IntegerField(min_value=3, max_value=4, default=4)
    active = serializers.ListField(child=serializers.JSONField(), required=False, default=list)
    standby = serializers.ListField(child=serializers.JSONField(), required=False, default=list)
    overwrite_existing = serializers.BooleanField(required=False, default=False)

    def _check_days(self, value):
        for day in value:
            if isinstance(day, bool):
                raise serializers.ValidationError("Each day must be a mask integer or a list of booleans")
            if isinstance(day, int):
                if day < 0:
                    raise serializers.ValidationError("Day masks must be non-negative")
            elif not isinstance(day, list):
                raise serializers.ValidationError("Each day must be a mask integer or a list of booleans")
        return value

    def validate_active(self, value):
        return self._check_days(value)

    def validate_standby(self, value):
        return self._check_days(value)

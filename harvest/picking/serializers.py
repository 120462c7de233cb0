from rest_framework import serializers
from .models import PickerTask


class PickerTaskSerializer(serializers.ModelSerializer):
    assigned_picker_username = serializers.CharField(source='assigned_picker.username', read_only=True, default=None)
    order_status = serializers.CharField(source='order.status', read_only=True)

    class Meta:
        model = PickerTask
        fields = [
            'id', 'logistics_center', 'shift_name', 'shift_date', 'order', 'order_status',
            'plan', 'total_est_kg', 'total_liters', 'total_est_units',
            'status', 'priority', 'assigned_picker', 'assigned_picker_username',
            'current_box_index', 'current_step_index', 'placed_kg', 'placed_units',
            'started_at', 'finished_at', 'created_by', 'history', 'notes',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ShiftParamsSerializer(serializers.Serializer):
    shift_name = serializers.ChoiceField(choices=PickerTask.SHIFT_NAME_CHOICES, required=False, allow_null=True)
    shift_date = serializers.DateField(required=False, allow_null=True)
    logistics_center = serializers.IntegerField(required=False, allow_null=True)


class GenerateTasksSerializer(ShiftParamsSerializer):
    priority = serializers.IntegerField(required=False, default=0)
    auto_set_ready = serializers.BooleanField(required=False, default=True)


class ShiftListSerializer(ShiftParamsSerializer):
    shift_name = serializers.ChoiceField(choices=PickerTask.SHIFT_NAME_CHOICES)
    shift_date = serializers.DateField()
    status = serializers.ChoiceField(choices=PickerTask.STATUS_CHOICES, required=False)
    page = serializers.IntegerField(required=False, default=1)
    limit = serializers.IntegerField(required=False, default=100)
    assigned_only = serializers.BooleanField(required=False, default=False)
    unassigned_only = serializers.BooleanField(required=False, default=False)
    picker_user_id = serializers.IntegerField(required=False, allow_null=True)
    ensure = serializers.BooleanField(required=False, default=True)


class ProgressSerializer(serializers.Serializer):
    placed_kg = serializers.FloatField(required=False, min_value=0)
    placed_units = serializers.IntegerField(required=False, min_value=0)
    current_step_index = serializers.IntegerField(required=False, min_value=0)
    current_box_index = serializers.IntegerField(required=False, min_value=0)
    finish = serializers.BooleanField(required=False, default=False)


class NoteSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default='')
    meta = serializers.JSONField(required=False, allow_null=True, default=None)


class PrioritySerializer(serializers.Serializer):
    priority = serializers.IntegerField()


class ReassignSerializer(serializers.Serializer):
    picker_user_id = serializers.IntegerField(required=False, allow_null=True, default=None)

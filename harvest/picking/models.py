from django.conf import settings
from django.db import models
from django.utils import timezone


def empty_plan():
    return {
        'boxes': [],
        'summary': {'total_boxes': 0, 'by_item': [], 'warnings': []},
    }


def rollup_plan(plan):
    """(total_kg, total_liters, total_units) across the plan's boxes"""
    total_kg = 0.0
    total_liters = 0.0
    total_units = 0
    for box in (plan or {}).get('boxes') or []:
        total_kg += box.get('est_weight_kg') or 0
        total_liters += box.get('est_fill_liters') or 0
        for piece in box.get('contents') or []:
            if piece.get('mode') == 'unit' and piece.get('units'):
                total_units += piece['units']
    return round(total_kg, 3), round(total_liters, 3), total_units


class PickerTask(models.Model):
    """Picking work for one order in one shift, with its packing plan"""
    STATUS_CHOICES = [
        ('open', 'Open'),
        ('ready', 'Ready'),
        ('claimed', 'Claimed'),
        ('in_progress', 'In progress'),
        ('done', 'Done'),
        ('problem', 'Problem'),
        ('cancelled', 'Cancelled'),
    ]
    SHIFT_NAME_CHOICES = [
        ('morning', 'Morning'),
        ('afternoon', 'Afternoon'),
        ('evening', 'Evening'),
        ('night', 'Night'),
    ]
    TRANSITIONS = {
        'open': ['ready', 'cancelled'],
        'ready': ['claimed', 'cancelled', 'problem'],
        'claimed': ['in_progress', 'problem', 'cancelled'],
        'in_progress': ['done', 'problem', 'cancelled'],
        'done': [],
        'problem': ['ready', 'cancelled'],
        'cancelled': [],
    }
    TERMINAL_STATUSES = ['done', 'cancelled']

    logistics_center = models.ForeignKey('centers.LogisticsCenter', on_delete=models.CASCADE, related_name='picker_tasks')
    shift_name = models.CharField(max_length=20, choices=SHIFT_NAME_CHOICES)
    shift_date = models.DateField()
    order = models.ForeignKey('orders.Order', on_delete=models.CASCADE, related_name='picker_tasks')

    plan = models.JSONField(default=empty_plan)
    total_est_kg = models.FloatField(default=0)
    total_liters = models.FloatField(default=0)
    total_est_units = models.PositiveIntegerField(default=0)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open', db_index=True)
    priority = models.IntegerField(default=0, db_index=True)
    assigned_picker = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='picker_tasks'
    )

    current_box_index = models.PositiveIntegerField(default=0)
    current_step_index = models.PositiveIntegerField(default=0)
    placed_kg = models.FloatField(default=0)
    placed_units = models.PositiveIntegerField(default=0)
    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_picker_tasks'
    )
    history = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def can_transition(self, to_status):
        return to_status in self.TRANSITIONS.get(self.status, [])

    def add_history(self, user, action, note='', meta=None):
        self.history.append({
            'action': action,
            'note': note or '',
            'by': {'id': user.id, 'name': user.username, 'role': user.role} if user else None,
            'at': timezone.now().isoformat(),
            'meta': meta,
        })

    def save(self, *args, **kwargs):
        # Keep rollups and summary totals in step with the plan
        plan = self.plan or empty_plan()
        summary = plan.setdefault('summary', {'total_boxes': 0, 'by_item': [], 'warnings': []})
        if not isinstance(summary.get('total_boxes'), int):
            summary['total_boxes'] = len(plan.get('boxes') or [])

        self.total_est_kg, self.total_liters, self.total_est_units = rollup_plan(plan)
        summary['total_kg'] = self.total_est_kg
        summary['total_liters'] = self.total_liters
        self.plan = plan

        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'plan', 'total_est_kg', 'total_liters', 'total_est_units'}
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Task #{self.id} order {self.order_id} ({self.shift_date} {self.shift_name}, {self.status})"

    class Meta:
        db_table = 'picker_tasks'
        unique_together = [['logistics_center', 'shift_name', 'shift_date', 'order']]
        indexes = [
            models.Index(fields=['logistics_center', 'shift_date', 'shift_name', 'status'], name='picker_task_shift_idx'),
            models.Index(fields=['assigned_picker', 'status'], name='picker_task_picker_idx'),
        ]

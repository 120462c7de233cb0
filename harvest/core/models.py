from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Platform user; the role decides which flows a user may drive"""
    ROLE_CHOICES = [
        ('customer', 'Customer'),
        ('farmer', 'Farmer'),
        ('worker', 'Worker'),
        ('picker', 'Picker'),
        ('deliverer', 'Deliverer'),
        ('industrialDeliverer', 'Industrial Deliverer'),
        ('fManager', 'Farmer Manager'),
        ('tManager', 'Transport Manager'),
        ('opManager', 'Operations Manager'),
        ('admin', 'Admin'),
    ]

    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=32, choices=ROLE_CHOICES, default='customer', db_index=True)
    logistics_center = models.ForeignKey(
        'centers.LogisticsCenter', on_delete=models.SET_NULL, null=True, blank=True, related_name='users'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_manager(self):
        return self.is_superuser or self.role in settings.HARVEST_MANAGER_ROLES

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for schedule and picking operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('schedule_add', 'Schedule Month Added'),
        ('schedule_update', 'Schedule Month Updated'),
        ('schedule_plan_submit', 'Schedule Plan Submitted'),
        ('shift_config_update', 'Shift Config Updated'),
        ('task_generate', 'Picker Tasks Generated'),
        ('task_transition', 'Picker Task Status Changed'),
        ('task_reassign', 'Picker Task Reassigned'),
        ('task_priority', 'Picker Task Priority Changed'),
        ('order_status_change', 'Order Status Changed'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., month, shift date)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_created_idx'),
            models.Index(fields=['action'], name='audit_action_idx'),
            models.Index(fields=['model_name'], name='audit_model_idx'),
            models.Index(fields=['object_reference'], name='audit_reference_idx'),
        ]

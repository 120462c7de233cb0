"""
Cache invalidation signals
Drop cached shift configuration when a row changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .models import ShiftConfig
from .shifts import invalidate_shift_configs

logger = logging.getLogger(__name__)


@receiver([post_save, post_delete], sender=ShiftConfig)
def invalidate_shift_config_cache(sender, instance, **kwargs):
    invalidate_shift_configs(instance.logistics_center_id)
    logger.debug(f"Invalidated shift config cache for center {instance.logistics_center_id}")

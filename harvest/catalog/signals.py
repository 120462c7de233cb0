"""
Cache invalidation signals
Drop cached box and container sizes when a row changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .models import PackageSize, ContainerSize
from .services import invalidate_size_caches

logger = logging.getLogger(__name__)


@receiver([post_save, post_delete], sender=PackageSize)
@receiver([post_save, post_delete], sender=ContainerSize)
def invalidate_size_cache(sender, instance, **kwargs):
    invalidate_size_caches()
    logger.debug(f"Invalidated size caches after {sender.__name__} '{instance.key}' changed")

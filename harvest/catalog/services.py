"""
Database side of the packing engine: loads rows into the plain dicts
that ``packing`` works on.
"""
import logging

from django.core.cache import cache

from harvest.core.cache_utils import cached_query, PACKAGE_SIZES_CACHE_TTL
from harvest.core.exceptions import BadRequest
from .models import Item, ItemPacking, PackageSize, ContainerSize
from . import packing

logger = logging.getLogger('harvest.catalog')

BOX_FIELDS = ['key', 'name', 'usable_liters', 'max_weight_kg', 'vented', 'max_skus_per_box', 'mixing_allowed']
CONTAINER_FIELDS = ['key', 'name', 'usable_liters', 'max_weight_kg', 'vented', 'tare_weight_kg']


def item_payload(item):
    return {
        'id': str(item.id),
        'name': item.name,
        'category': item.category,
        'type': item.type,
        'variety': item.variety,
        'avg_weight_per_unit_gr': item.avg_weight_per_unit_gr,
    }


@cached_query(cache_ttl=PACKAGE_SIZES_CACHE_TTL, key_prefix="package_sizes")
def load_package_sizes():
    return list(PackageSize.objects.order_by('usable_liters').values(*BOX_FIELDS))


@cached_query(cache_ttl=PACKAGE_SIZES_CACHE_TTL, key_prefix="container_sizes")
def load_container_sizes():
    return list(ContainerSize.objects.order_by('usable_liters').values(*CONTAINER_FIELDS))


def invalidate_size_caches():
    cache.delete_many([load_package_sizes.cache_key(), load_container_sizes.cache_key()])


def load_items(item_ids):
    """(items_by_id, overrides_by_id), both keyed by the item id as a string"""
    ids = {int(i) for i in item_ids if str(i).isdigit()}
    items = Item.objects.filter(id__in=ids)
    items_by_id = {str(item.id): item_payload(item) for item in items}
    overrides_by_id = {
        str(p.item_id): p.as_overrides()
        for p in ItemPacking.objects.filter(item_id__in=ids)
    }
    return items_by_id, overrides_by_id


def estimate_containers(lines):
    """Container estimate for ``[{item_id, estimated_kg, committed_kg}]``"""
    items_by_id, overrides_by_id = load_items(line.get('item_id') for line in lines)
    return packing.estimate_containers_for_lines(lines, items_by_id, load_container_sizes(), overrides_by_id)


def estimate_item_containers(item, quantity_kg):
    if quantity_kg is None or quantity_kg <= 0:
        raise BadRequest("quantity_kg must be a positive number")

    overrides = item.packing.as_overrides() if hasattr(item, 'packing') else None
    containers = load_container_sizes()
    estimate = packing.estimate_containers_for_item_quantity(item_payload(item), quantity_kg, containers, overrides)
    return {
        'estimate': estimate,
        'capacities': packing.estimate_container_capacities_for_item(item_payload(item), containers, overrides),
    }


def build_packing_plan(lines):
    """
    Packing plan for order lines
    (``{item_id, name, quantity_kg, units, avg_weight_per_unit_kg}``)
    """
    items_by_id, overrides_by_id = load_items(line['item_id'] for line in lines)
    plan = packing.compute_packing_for_order(lines, items_by_id, load_package_sizes(), overrides_by_id)
    if plan['summary']['warnings']:
        logger.warning(f"Packing plan warnings: {plan['summary']['warnings']}")
    return plan

import logging
from datetime import date as date_type

from harvest.catalog.services import build_packing_plan
from harvest.centers import shifts
from harvest.core.exceptions import BadRequest
from .models import Order

logger = logging.getLogger('harvest.orders')

OPEN_STATUSES = ['pending', 'confirmed', 'packing', 'ready']


def parse_date(value, field='date'):
    if isinstance(value, date_type):
        return value
    try:
        return date_type.fromisoformat(str(value))
    except ValueError:
        raise BadRequest(f"{field} must be YYYY-MM-DD")


def check_shift_name(shift_name):
    if shift_name not in shifts.SHIFT_ORDER:
        raise BadRequest(f"Unknown shift: {shift_name}")
    return shift_name


def ensure_shift_open_for_orders(center, delivery_date, shift_name, now=None):
    """Orders can only target a shift that has not started yet"""
    check_shift_name(shift_name)
    if shifts.is_shift_started(delivery_date, shift_name, now=now, tz_name=center.timezone):
        raise BadRequest(f"Shift {shift_name} on {delivery_date} has already started")


def list_orders_for_shift(center, date, shift_name, statuses=None):
    """Orders of one center, date and shift, oldest first"""
    day = parse_date(date)
    check_shift_name(shift_name)
    return (
        Order.objects.filter(
            logistics_center=center,
            delivery_date=day,
            shift_name=shift_name,
            status__in=statuses or OPEN_STATUSES,
        )
        .select_related('customer')
        .prefetch_related('items')
        .order_by('created_at', 'id')
    )


def build_order_packing_plan(order):
    lines = [line.packing_line() for line in order.items.all()]
    plan = build_packing_plan(lines)
    logger.debug(f"Packing plan for order {order.id}: {plan['summary']['total_boxes']} boxes")
    return plan

"""
Shift windows and "which shift is it" lookups.

Two families live here:

* configured windows (``ShiftConfig`` rows, minutes since local midnight,
  per logistics center) used by scheduling and picking;
* the fixed clock shifts (night 00-06, morning 06-12, afternoon 12-18,
  evening 18-24) used when offering delivery shifts to customers.
"""
import logging
from datetime import datetime, time, timedelta
from datetime import timezone as dt_timezone
from zoneinfo import ZoneInfo

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from harvest.core.cache_utils import cached_query, SHIFT_CONFIG_CACHE_TTL
from harvest.core.exceptions import NotFound
from .models import ShiftConfig, MINUTES_IN_DAY

logger = logging.getLogger('harvest.centers')

SHIFT_ORDER = ['morning', 'afternoon', 'evening', 'night']
NO_SHIFT = 'none'

CONFIG_FIELDS = [
    'logistics_center_id', 'name', 'timezone',
    'general_start_min', 'general_end_min',
    'industrial_deliverer_start_min', 'industrial_deliverer_end_min',
    'deliverer_start_min', 'deliverer_end_min',
    'delivery_slot_start_min', 'delivery_slot_end_min',
    'slot_size_min',
]


def get_zone(tz_name=None):
    return ZoneInfo(tz_name or settings.HARVEST_DEFAULT_TZ)


def local_now(tz_name=None, now=None):
    """Aware "now" converted to the given zone"""
    now = now or timezone.now()
    return now.astimezone(get_zone(tz_name))


def minutes_since_midnight(dt):
    return dt.hour * 60 + dt.minute


def normalize_window(start_min, end_min):
    wraps = end_min <= start_min
    duration = (MINUTES_IN_DAY - start_min + end_min) if wraps else (end_min - start_min)
    return {
        'start_min': start_min,
        'end_min': end_min,
        'wraps_midnight': wraps,
        'duration_min': duration,
    }


def is_minute_in_window(now_min, start, end):
    """[start, end) in minutes; a start after the end wraps past midnight"""
    if start <= end:
        return start <= now_min < end
    return now_min >= start or now_min < end


@cached_query(cache_ttl=SHIFT_CONFIG_CACHE_TTL, key_prefix="shift_configs")
def load_shift_configs(center_id):
    """Shift config rows as plain dicts; ``None`` loads every center"""
    queryset = ShiftConfig.objects.all()
    if center_id is not None:
        queryset = queryset.filter(logistics_center_id=center_id)
    return list(queryset.order_by('logistics_center_id', 'general_start_min').values(*CONFIG_FIELDS))


def invalidate_shift_configs(center_id):
    cache.delete_many([
        load_shift_configs.cache_key(center_id),
        load_shift_configs.cache_key(None),
    ])


def get_shift_config(center_id, name):
    for row in load_shift_configs(center_id):
        if row['name'] == name:
            return row
    raise NotFound(f"ShiftConfig not found for {center_id}/{name}")


def _windows(cfg):
    return {
        'name': cfg['name'],
        'timezone': cfg['timezone'],
        'general': normalize_window(cfg['general_start_min'], cfg['general_end_min']),
        'industrial_deliverer': normalize_window(
            cfg['industrial_deliverer_start_min'], cfg['industrial_deliverer_end_min']
        ),
        'deliverer': normalize_window(cfg['deliverer_start_min'], cfg['deliverer_end_min']),
        'delivery_slot': {
            **normalize_window(cfg['delivery_slot_start_min'], cfg['delivery_slot_end_min']),
            'slot_size_min': cfg['slot_size_min'] or 30,
        },
    }


def get_shift_windows(center_id, name):
    return _windows(get_shift_config(center_id, name))


def list_shift_windows(center_id):
    rows = sorted(load_shift_configs(center_id), key=lambda r: SHIFT_ORDER.index(r['name']))
    return [_windows(row) for row in rows]


def get_current_shift(center_id=None, now=None):
    """Name of the shift whose general window contains now, or ``"none"``"""
    configs = load_shift_configs(center_id)
    if not configs:
        return NO_SHIFT
    now_local = local_now(configs[0]['timezone'], now)
    now_min = minutes_since_midnight(now_local)
    for cfg in configs:
        if is_minute_in_window(now_min, cfg['general_start_min'], cfg['general_end_min']):
            return cfg['name']
    return NO_SHIFT


def get_next_available_shifts(center_id, count=5, from_ts=None):
    """
    Next ``count`` shifts (date + name) whose general window starts strictly
    after now, rolling over to the following days.
    """
    rows = load_shift_configs(center_id)
    if not rows:
        raise NotFound(f"No ShiftConfig found for center '{center_id}'")

    ordered = sorted(rows, key=lambda r: r['general_start_min'])
    now = local_now(rows[0]['timezone'], from_ts)
    now_min = minutes_since_midnight(now)

    day = now.date()
    idx = next((i for i, r in enumerate(ordered) if r['general_start_min'] > now_min), None)
    if idx is None:
        day += timedelta(days=1)
        idx = 0

    out = []
    while len(out) < count:
        out.append({'date': day.isoformat(), 'name': ordered[idx]['name']})
        idx += 1
        if idx >= len(ordered):
            idx = 0
            day += timedelta(days=1)
    return out


def shift_minutes_to_utc_range(tz_name, start_min, end_min, now=None):
    """
    The local window as UTC ISO strings. Wrapped windows end the next day;
    after midnight, a wrapped window still running started yesterday.
    """
    zone = get_zone(tz_name)
    now_local = local_now(tz_name, now)
    day = now_local.date()
    wraps = end_min <= start_min
    if wraps and minutes_since_midnight(now_local) < end_min:
        day -= timedelta(days=1)

    base = datetime.combine(day, time(0), tzinfo=zone)
    start = base + timedelta(minutes=start_min)
    end = base + timedelta(minutes=end_min)
    if wraps:
        end += timedelta(days=1)
    return {
        'start_iso': start.astimezone(dt_timezone.utc).isoformat(),
        'end_iso': end.astimezone(dt_timezone.utc).isoformat(),
    }


def get_current_shift_window(center_id=None, now=None):
    name = get_current_shift(center_id, now)
    if name == NO_SHIFT:
        raise NotFound("No active shift right now")

    if center_id is None:
        cfg = next((r for r in load_shift_configs(None) if r['name'] == name), None)
        if cfg is None:
            raise NotFound(f"ShiftConfig not found for shift='{name}'")
    else:
        cfg = get_shift_config(center_id, name)

    window = shift_minutes_to_utc_range(cfg['timezone'], cfg['general_start_min'], cfg['general_end_min'], now)
    return {'shift_name': name, **window}


# Fixed clock shifts

CLOCK_SHIFTS = ['night', 'morning', 'afternoon', 'evening']
DISPLAY_SHIFT_ORDER = ['morning', 'afternoon', 'evening', 'night']
SHIFT_START_HOUR = {'night': 0, 'morning': 6, 'afternoon': 12, 'evening': 18}


def _clock_shift(shift):
    shift = (shift or '').lower()
    if shift not in SHIFT_START_HOUR:
        raise ValueError(f"Unknown shift: {shift}")
    return shift


def shift_window_for(day, shift, tz_name=None):
    """[start, end) of a clock shift on a local date; evening ends at next midnight"""
    shift = _clock_shift(shift)
    zone = get_zone(tz_name)
    start = datetime.combine(day, time(SHIFT_START_HOUR[shift]), tzinfo=zone)
    if shift == 'evening':
        end = datetime.combine(day + timedelta(days=1), time(0), tzinfo=zone)
    else:
        next_shift = CLOCK_SHIFTS[CLOCK_SHIFTS.index(shift) + 1]
        end = datetime.combine(day, time(SHIFT_START_HOUR[next_shift]), tzinfo=zone)
    return start, end


def is_shift_started(day, shift, now=None, tz_name=None):
    start, _ = shift_window_for(day, shift, tz_name)
    return (now or timezone.now()) >= start


def is_shift_current(day, shift, now=None, tz_name=None):
    start, end = shift_window_for(day, shift, tz_name)
    now = now or timezone.now()
    return start <= now < end


def is_shift_future(day, shift, now=None, tz_name=None):
    start, _ = shift_window_for(day, shift, tz_name)
    return (now or timezone.now()) < start


def is_shift_past(day, shift, now=None, tz_name=None):
    _, end = shift_window_for(day, shift, tz_name)
    return (now or timezone.now()) >= end


def compare_shift(a, b):
    """Chronological order inside one day (night first)"""
    return CLOCK_SHIFTS.index(_clock_shift(a)) - CLOCK_SHIFTS.index(_clock_shift(b))


def get_current_and_upcoming_shift_windows(now=None, horizon_days=1, tz_name=None):
    """Clock shifts from today to today+horizon whose end is still ahead"""
    now = now or timezone.now()
    today = local_now(tz_name, now).date()
    out = []
    for offset in range(horizon_days + 1):
        day = today + timedelta(days=offset)
        for shift in CLOCK_SHIFTS:
            start, end = shift_window_for(day, shift, tz_name)
            if end > now:
                out.append({'date': day.isoformat(), 'shift': shift, 'start': start, 'end': end})
    out.sort(key=lambda w: (w['date'], CLOCK_SHIFTS.index(w['shift'])))
    return out


def get_create_order_options(now=None, horizon_days=1, tz_name=None):
    """Every clock shift in the horizon, flagged ``can_add`` until it has started"""
    now = now or timezone.now()
    today = local_now(tz_name, now).date()
    out = []
    for offset in range(horizon_days + 1):
        day = today + timedelta(days=offset)
        for shift in CLOCK_SHIFTS:
            out.append({
                'date': day.isoformat(),
                'shift': shift,
                'can_add': not is_shift_started(day, shift, now, tz_name),
            })
    out.sort(key=lambda o: (o['date'], DISPLAY_SHIFT_ORDER.index(o['shift'])))
    return out

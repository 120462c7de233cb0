"""
Monthly schedule storage and queries.

A ``Schedule`` belongs to one worker at one logistics center and holds one
``MonthlySchedule`` row per (type, month). Each row's bitmap is a per-day
list of shift masks.
"""
import logging
import re
from datetime import datetime

from django.conf import settings
from django.db import transaction

from harvest.centers import shifts
from harvest.core.exceptions import BadRequest, Forbidden, NotFound, Conflict, ServiceError
from .bitmaps import MAX_DAY_MASK, SHIFT_BITS, days_in_month, decode_mask_to_row
from .models import Schedule, MonthlySchedule
from .validation import MonthPlanner

logger = logging.getLogger('harvest.scheduling')

SCHEDULE_TYPES = ('active', 'standby')
MONTH_RE = re.compile(r'^(\d{4})-(\d{2})$')


def normalize_month(raw):
    """'2025-3' is rejected, '2025-03' -> '2025-03'"""
    value = str(raw if raw is not None else '').strip()
    match = MONTH_RE.match(value)
    if not match:
        raise BadRequest(f"Invalid month format '{raw}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if month < 1 or month > 12:
        raise BadRequest(f"Invalid month value '{raw}', month must be 01-12")
    if year < 1970 or year > 9999:
        raise BadRequest(f"Invalid year in month '{raw}'")
    return f"{year:04d}-{month:02d}"


def split_month(month):
    year, month_num = month.split('-')
    return int(year), int(month_num)


def validate_bitmap(bitmap):
    if not isinstance(bitmap, (list, tuple)) or not bitmap:
        raise BadRequest("bitmap must be a non-empty array of integers")
    for value in bitmap:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > MAX_DAY_MASK:
            raise BadRequest(f"bitmap must contain only integers between 0 and {MAX_DAY_MASK}")


def check_schedule_type(schedule_type):
    if schedule_type not in SCHEDULE_TYPES:
        raise BadRequest(f"scheduleType must be one of {', '.join(SCHEDULE_TYPES)}")


def parse_day(raw):
    try:
        return datetime.strptime(str(raw), '%Y-%m-%d').date()
    except ValueError:
        raise BadRequest(f"Invalid date '{raw}', expected YYYY-MM-DD")


def resolve_timezone(center=None):
    return getattr(center, 'timezone', None) or settings.HARVEST_DEFAULT_TZ


def _id(value):
    return getattr(value, 'pk', value)


def _schedule_queryset(user, center=None):
    queryset = Schedule.objects.filter(user_id=_id(user))
    if center is not None:
        queryset = queryset.filter(logistics_center_id=_id(center))
    return queryset


def _month_entry(schedule, schedule_type, month):
    if schedule is None:
        return None
    return schedule.months.filter(schedule_type=schedule_type, month=month).first()


def _month_payload(schedule, month, user_id=None, center_id=None):
    active = _month_entry(schedule, 'active', month)
    standby = _month_entry(schedule, 'standby', month)
    return {
        'user_id': schedule.user_id if schedule else user_id,
        'role': schedule.role if schedule else None,
        'logistics_center_id': schedule.logistics_center_id if schedule else center_id,
        'month': month,
        'active': active.bitmap if active else [],
        'standby': standby.bitmap if standby else [],
    }


def _entry_payload(schedule, schedule_type, month, bitmap):
    return {
        'user_id': schedule.user_id,
        'role': schedule.role,
        'logistics_center_id': schedule.logistics_center_id,
        'schedule_type': schedule_type,
        'month': month,
        'bitmap': bitmap,
    }


def ensure_schedule(user, role, center=None):
    schedule = _schedule_queryset(user, center).first()
    if schedule:
        return schedule
    schedule = Schedule.objects.create(user_id=_id(user), role=role, logistics_center_id=_id(center))
    logger.info(f"Created schedule {schedule.id} for user {schedule.user_id} ({role})")
    return schedule


@transaction.atomic
def add_monthly_schedule(user, role, center, month, schedule_type, bitmap, overwrite_existing=False):
    """
    Store a month bitmap, creating the user's schedule if needed.
    An existing month is a 409 unless ``overwrite_existing``.
    """
    month = normalize_month(month)
    check_schedule_type(schedule_type)
    validate_bitmap(bitmap)

    schedule = ensure_schedule(user, role, center)
    entry = _month_entry(schedule, schedule_type, month)
    if entry and not overwrite_existing:
        raise Conflict(f"Schedule for month '{month}' already exists for type '{schedule_type}'")

    bitmap = list(bitmap)
    if entry:
        entry.bitmap = bitmap
        entry.save(update_fields=['bitmap', 'updated_at'])
    else:
        MonthlySchedule.objects.create(schedule=schedule, schedule_type=schedule_type, month=month, bitmap=bitmap)

    return _entry_payload(schedule, schedule_type, month, bitmap)


def enforce_lock_window(old_bitmap, new_bitmap, month, tz_name=None, allow_inside=False, now=None):
    """
    Reject changes to days starting within the next lock window (14 days by
    default) in ``tz_name``. Only days whose value differs are checked.
    """
    zone = shifts.get_zone(tz_name)
    now = shifts.local_now(tz_name, now)
    year, month_num = split_month(month)
    dim = days_in_month(year, month_num)
    lock_days = settings.HARVEST_SCHEDULE_LOCK_DAYS

    for i in range(max(len(old_bitmap), len(new_bitmap))):
        prev = old_bitmap[i] if i < len(old_bitmap) else 0
        nxt = new_bitmap[i] if i < len(new_bitmap) else 0
        if prev == nxt:
            continue

        day = i + 1
        if day > dim:
            raise BadRequest(f"Invalid day index {day} for month '{month}' when enforcing two-week rule")

        day_start = datetime(year, month_num, day, tzinfo=zone)
        diff_days = (day_start - now).total_seconds() / 86400
        if not allow_inside and 0 <= diff_days < lock_days:
            raise Forbidden(f"Changes inside the next {lock_days} days require manager approval")


@transaction.atomic
def update_monthly_schedule(user, center, month, schedule_type, bitmap, tz=None, can_bypass_lock=False, now=None):
    month = normalize_month(month)
    check_schedule_type(schedule_type)
    validate_bitmap(bitmap)

    schedule = _schedule_queryset(user, center).first()
    if not schedule:
        raise NotFound("Schedule document not found for user")

    entry = _month_entry(schedule, schedule_type, month)
    if not entry:
        raise NotFound(f"No existing {schedule_type} schedule for month '{month}'")

    enforce_lock_window(
        entry.bitmap or [], list(bitmap), month,
        tz_name=tz or resolve_timezone(center),
        allow_inside=can_bypass_lock,
        now=now,
    )

    entry.bitmap = list(bitmap)
    entry.save(update_fields=['bitmap', 'updated_at'])
    return _entry_payload(schedule, schedule_type, month, entry.bitmap)


def get_schedule_for_user_month(user, center, month):
    """Active and standby bitmaps for a month; empty lists when nothing is stored"""
    month = normalize_month(month)
    schedule = _schedule_queryset(user, center).first()
    return _month_payload(schedule, month, user_id=_id(user), center_id=_id(center))


def get_schedule_by_user_id(user_id, month=None):
    schedule = Schedule.objects.filter(user_id=user_id).prefetch_related('months').first()
    if not schedule:
        raise NotFound("Schedule document not found")

    if month:
        return _month_payload(schedule, normalize_month(month))

    months = list(schedule.months.all())
    return {
        'id': schedule.id,
        'user_id': schedule.user_id,
        'role': schedule.role,
        'logistics_center_id': schedule.logistics_center_id,
        'active': [{'month': m.month, 'bitmap': m.bitmap} for m in months if m.schedule_type == 'active'],
        'standby': [{'month': m.month, 'bitmap': m.bitmap} for m in months if m.schedule_type == 'standby'],
        'created_at': schedule.created_at,
        'updated_at': schedule.updated_at,
    }


def _schedules_for_role(role, center):
    return (
        Schedule.objects
        .filter(role=role, logistics_center_id=_id(center))
        .prefetch_related('months')
        .order_by('user_id')
    )


def _day_value(schedule, schedule_type, month, day_index):
    for entry in schedule.months.all():
        if entry.schedule_type == schedule_type and entry.month == month:
            return entry.value_for_day(day_index)
    return 0


def get_schedule_by_role_and_date(role, date, center):
    """Every worker of a role at a center with their masks for one day"""
    day = parse_day(date)
    month = f"{day.year:04d}-{day.month:02d}"
    day_index = day.day - 1
    schedules = _schedules_for_role(role, center)

    records = [
        {
            'user_id': s.user_id,
            'role': s.role,
            'logistics_center_id': s.logistics_center_id,
            'date': day.isoformat(),
            'active': _day_value(s, 'active', month, day_index),
            'standby': _day_value(s, 'standby', month, day_index),
        }
        for s in schedules
    ]
    return {
        'role': role,
        'date': day.isoformat(),
        'logistics_center_id': _id(center),
        'month': month,
        'day_index': day_index,
        'records': records,
    }


def get_workers_for_shift(role, shift_name, date, schedule_type, center):
    """Workers whose mask for the day includes the shift"""
    mask = SHIFT_BITS.get(str(shift_name or '').lower())
    if not mask:
        raise BadRequest(f"Unknown shiftName '{shift_name}'. Expected one of {', '.join(SHIFT_BITS)}")
    check_schedule_type(schedule_type)

    day = parse_day(date)
    month = f"{day.year:04d}-{day.month:02d}"
    schedules = _schedules_for_role(role, center)

    workers = [
        {'user_id': s.user_id, 'role': s.role, 'logistics_center_id': s.logistics_center_id}
        for s in schedules
        if _day_value(s, schedule_type, month, day.day - 1) & mask
    ]
    return {
        'role': role,
        'date': day.isoformat(),
        'shift_name': shift_name,
        'schedule_type': schedule_type,
        'logistics_center_id': _id(center),
        'workers': workers,
    }


def get_is_active_now(user, center=None, month=None, now=None):
    """Whether the user's active mask for today covers the running shift"""
    center_id = _id(center)
    shift_name = shifts.get_current_shift(center_id, now)
    has_shift = shift_name != shifts.NO_SHIFT

    tz_name = resolve_timezone(center)
    if has_shift and center_id is not None:
        try:
            tz_name = shifts.get_shift_config(center_id, shift_name)['timezone'] or tz_name
        except NotFound:
            logger.debug(f"No shift config for {center_id}/{shift_name}, using {tz_name}")

    local = shifts.local_now(tz_name, now)
    month = normalize_month(month or local.strftime('%Y-%m'))
    schedule = _schedule_queryset(user, center).first()
    payload = _month_payload(schedule, month, user_id=_id(user), center_id=center_id)

    mask = SHIFT_BITS.get(shift_name, 0) if has_shift else 0
    today = payload['active'][local.day - 1] if local.day - 1 < len(payload['active']) else 0
    payload.update({
        'date': local.date().isoformat(),
        'shift_name': shift_name,
        'is_active': bool(mask and (int(today or 0) & mask)),
    })
    return payload


def build_planner(year, month, slot_count, active=None, standby=None):
    """
    Planner seeded from either per-day masks (``[3, 0, 5, ...]``) or boolean
    rows (``[[True, False, True], ...]``).
    """
    planner = MonthPlanner(year, month, slot_count)
    for plan_type, values in (('active', active), ('standby', standby)):
        for day_idx, value in enumerate(values or []):
            if isinstance(value, (list, tuple)):
                planner.set_day(plan_type, day_idx, value)
            else:
                planner.set_day(plan_type, day_idx, decode_mask_to_row(value, planner.slot_count))
    return planner


@transaction.atomic
def submit_month_plan(user, role, center, year, month, active, standby, slot_count=4, overwrite_existing=False):
    """Validate a month plan and store both bitmaps"""
    planner = build_planner(year, month, slot_count, active, standby)
    result = planner.validate_all()
    if not result['ok']:
        raise ServiceError("Plan violates shift rules", status_code=400, details=result)

    payloads = planner.build_payloads()
    month_key = f"{year:04d}-{month:02d}"
    stored = {
        schedule_type: add_monthly_schedule(
            user, role, center, month_key, schedule_type, payloads[schedule_type],
            overwrite_existing=overwrite_existing,
        )
        for schedule_type in SCHEDULE_TYPES
    }
    logger.info(
        f"Stored plan {month_key} for user {_id(user)}: "
        f"{planner.total_selected['active']} active / {planner.total_selected['standby']} standby slots"
    )
    return {
        'month': month_key,
        'active': stored['active']['bitmap'],
        'standby': stored['standby']['bitmap'],
        'total_selected': planner.total_selected,
        'validation': result,
    }

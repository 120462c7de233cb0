"""
Shift bitmap encoding.

Each day of a schedule is a small integer mask. The bit assignment is stable
and shared with stored data, do not change it without a data migration:

    morning = 1, afternoon = 2, evening = 4, night = 8

Weekly masks are 7 entries (Sun..Sat). Monthly helpers work on per-day lists
where any truthy entry marks the day active. Months are 1..12, days are
1-indexed.
"""
import calendar
import math
import operator
from functools import reduce

DAYS = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']
SHIFTS = ['morning', 'afternoon', 'evening', 'night']

SHIFT_BITS = {
    'morning': 1,
    'afternoon': 2,
    'evening': 4,
    'night': 8,
}

WEEK_DAYS = len(DAYS)
MAX_DAY_MASK = reduce(operator.or_, SHIFT_BITS.values(), 0)


def shift_mask(name):
    """Bit for a shift name (case-insensitive)"""
    try:
        return SHIFT_BITS[str(name).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown shift: {name}")


def mask_has_shift(mask, name):
    return (int(mask or 0) & shift_mask(name)) != 0


# Weekly masks

def empty_weekly_rows():
    """SHIFTS x DAYS grid of False"""
    return [[False] * WEEK_DAYS for _ in SHIFTS]


def _coerce_mask_value(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return min(max(int(value), 0), MAX_DAY_MASK)


def normalize_weekly_mask(mask):
    """Exactly 7 entries: truncated or padded with 0, non-numbers 0, clamped to 0..15"""
    values = list(mask or [])[:WEEK_DAYS]
    values += [0] * (WEEK_DAYS - len(values))
    return [_coerce_mask_value(v) for v in values]


def encode_weekly(rows):
    """rows[shift][day] booleans -> 7 per-day masks"""
    weekly = [0] * WEEK_DAYS
    rows = rows or []
    for day in range(WEEK_DAYS):
        day_mask = 0
        for s, shift in enumerate(SHIFTS):
            row = rows[s] if s < len(rows) else []
            if day < len(row) and row[day]:
                day_mask |= SHIFT_BITS[shift]
        weekly[day] = day_mask
    return weekly


def decode_weekly(mask):
    normalized = normalize_weekly_mask(mask)
    rows = empty_weekly_rows()
    for s, shift in enumerate(SHIFTS):
        bit = SHIFT_BITS[shift]
        for day in range(WEEK_DAYS):
            rows[s][day] = (normalized[day] & bit) != 0
    return rows


def toggle_weekly_cell(rows, shift_index, day_index):
    """Copy of rows with one cell flipped; out-of-range indexes leave it unchanged"""
    new_rows = [list(row) for row in rows]
    if 0 <= shift_index < len(SHIFTS) and 0 <= day_index < WEEK_DAYS:
        new_rows[shift_index][day_index] = not new_rows[shift_index][day_index]
    return new_rows


def clear_weekly_mask():
    return [0] * WEEK_DAYS


def is_valid_weekly_mask(mask):
    return (
        isinstance(mask, (list, tuple))
        and len(mask) == WEEK_DAYS
        and all(
            not isinstance(v, bool) and isinstance(v, int) and 0 <= v <= MAX_DAY_MASK
            for v in mask
        )
    )


# Slot rows (planner grid <-> per-day mask)

def encode_row_to_mask(row):
    """Slot i selected sets bit i"""
    mask = 0
    for i, selected in enumerate(row or []):
        if selected:
            mask |= 1 << i
    return mask


def decode_mask_to_row(mask, slot_count):
    mask = int(mask or 0)
    return [((mask >> i) & 1) == 1 for i in range(slot_count)]


# Monthly per-day bitmaps

def days_in_month(year, month):
    return calendar.monthrange(year, month)[1]


def normalize_bitmap_for_month(bitmap, year, month):
    """Month-length copy, truthy entries -> 1, padded with 0"""
    bitmap = list(bitmap or [])
    dim = days_in_month(year, month)
    return [1 if i < len(bitmap) and bitmap[i] else 0 for i in range(dim)]


def is_bitmap_length_valid(bitmap, year, month):
    return len(bitmap) == days_in_month(year, month)


def count_active(bitmap, year, month):
    return sum(normalize_bitmap_for_month(bitmap, year, month))


def bitmap_to_days(bitmap, year, month):
    """[0, 1, 0, 1] -> [2, 4]"""
    return [i + 1 for i, v in enumerate(normalize_bitmap_for_month(bitmap, year, month)) if v]


def bitmap_to_day_set(bitmap, year, month):
    return set(bitmap_to_days(bitmap, year, month))


def is_active_day(bitmap, day_number, year, month):
    if day_number < 1 or day_number > days_in_month(year, month):
        return False
    return bool(normalize_bitmap_for_month(bitmap, year, month)[day_number - 1])


def days_to_bitmap(days, year, month):
    """Day numbers -> month bitmap; out-of-range or non-integer days are ignored"""
    dim = days_in_month(year, month)
    out = [0] * dim
    for day in days:
        if isinstance(day, int) and not isinstance(day, bool) and 1 <= day <= dim:
            out[day - 1] = 1
    return out


def merge_bitmaps(a, b, year, month):
    aa = normalize_bitmap_for_month(a, year, month)
    bb = normalize_bitmap_for_month(b, year, month)
    return [1 if x or y else 0 for x, y in zip(aa, bb)]


def intersect_bitmaps(a, b, year, month):
    aa = normalize_bitmap_for_month(a, year, month)
    bb = normalize_bitmap_for_month(b, year, month)
    return [1 if x and y else 0 for x, y in zip(aa, bb)]


def subtract_bitmaps(a, b, year, month):
    aa = normalize_bitmap_for_month(a, year, month)
    bb = normalize_bitmap_for_month(b, year, month)
    return [1 if x and not y else 0 for x, y in zip(aa, bb)]


def day_number_if_in_month(value, year, month):
    """Day of month for a date inside year/month, else None"""
    if value.year == year and value.month == month:
        return value.day
    return None


def debug_bitmap_summary(bitmap, year, month):
    """e.g. "2025-11: 1,5,7" """
    days = bitmap_to_days(bitmap, year, month)
    return f"{year}-{month:02d}: {','.join(str(d) for d in days) or '(none)'}"

"""
Monthly shift plan validation.

A plan is two [day][slot] boolean grids (active and standby) for one month.
Per day:

* at most 2 active and at most 2 standby shifts;
* 2 active allows at most 1 standby, and 2 standby allows at most 1 active;
* the union of both grids may not hold 3 consecutive slots (no wrap-around).

Works for any slot count >= 3.
"""
from .bitmaps import days_in_month, encode_row_to_mask, decode_mask_to_row

MIN_SLOT_COUNT = 3

MAX_ACTIVE_EXCEEDED = 'MAX_ACTIVE_EXCEEDED'
MAX_STANDBY_EXCEEDED = 'MAX_STANDBY_EXCEEDED'
ACTIVE_EQ_2_STANDBY_GT_1 = 'ACTIVE_EQ_2_STANDBY_GT_1'
STANDBY_EQ_2_ACTIVE_GT_1 = 'STANDBY_EQ_2_ACTIVE_GT_1'
THREE_CONSECUTIVE_SELECTED = 'THREE_CONSECUTIVE_SELECTED'

MESSAGES = {
    MAX_ACTIVE_EXCEEDED: "Max 2 active shifts per day.",
    MAX_STANDBY_EXCEEDED: "Max 2 standby shifts per day.",
    ACTIVE_EQ_2_STANDBY_GT_1: "Active=2 ⇒ allow up to 1 standby only.",
    STANDBY_EQ_2_ACTIVE_GT_1: "Standby=2 ⇒ allow up to 1 active only.",
    THREE_CONSECUTIVE_SELECTED: "Three consecutive shifts in one day are not allowed.",
}

PLAN_TYPES = ('active', 'standby')


def to_messages(codes):
    return [MESSAGES[code] for code in codes]


def _fixed_row(row, slot_count):
    row = list(row or [])
    return [bool(row[i]) if i < len(row) else False for i in range(slot_count)]


def ensure_matrix_shape(matrix, days, slot_count):
    """Reshape to days x slot_count, missing cells False"""
    matrix = list(matrix or [])
    return [_fixed_row(matrix[d] if d < len(matrix) else None, slot_count) for d in range(days)]


def has_three_consecutive(combined):
    for i in range(len(combined) - 2):
        if combined[i] and combined[i + 1] and combined[i + 2]:
            return True
    return False


def _day_codes(active_row, standby_row):
    active_count = sum(active_row)
    standby_count = sum(standby_row)
    combined = [a or s for a, s in zip(active_row, standby_row)]

    codes = []
    if active_count > 2:
        codes.append(MAX_ACTIVE_EXCEEDED)
    if standby_count > 2:
        codes.append(MAX_STANDBY_EXCEEDED)
    if active_count == 2 and standby_count > 1:
        codes.append(ACTIVE_EQ_2_STANDBY_GT_1)
    if standby_count == 2 and active_count > 1:
        codes.append(STANDBY_EQ_2_ACTIVE_GT_1)
    if has_three_consecutive(combined):
        codes.append(THREE_CONSECUTIVE_SELECTED)
    return codes


def validate_plan_day(active_row, standby_row, slot_count):
    if slot_count < MIN_SLOT_COUNT:
        raise ValueError("validate_plan_day: slot_count must be >= 3")
    codes = _day_codes(_fixed_row(active_row, slot_count), _fixed_row(standby_row, slot_count))
    return {'valid': not codes, 'codes': codes, 'messages': to_messages(codes)}


def validate_plan(active, standby, year, month, slot_count):
    """
    Validate a whole month.

    Returns ``{ok, days: [{valid, codes}], errors: [{day, codes, messages}],
    summary: {invalid_day_count, total_days}}`` with ``day`` 1-indexed.
    """
    if slot_count < MIN_SLOT_COUNT:
        raise ValueError("validate_plan: slot_count must be >= 3")

    dim = days_in_month(year, month)
    active = ensure_matrix_shape(active, dim, slot_count)
    standby = ensure_matrix_shape(standby, dim, slot_count)

    per_day = []
    errors = []
    for day_idx in range(dim):
        codes = _day_codes(active[day_idx], standby[day_idx])
        per_day.append({'valid': not codes, 'codes': codes})
        if codes:
            errors.append({'day': day_idx + 1, 'codes': codes, 'messages': to_messages(codes)})

    return {
        'ok': not errors,
        'days': per_day,
        'errors': errors,
        'summary': {
            'invalid_day_count': len(errors),
            'total_days': dim,
        },
    }


class MonthPlanner:
    """
    Editable active/standby grids for one month, seeded from stored bitmaps.

    Day and slot indexes are 0-based; edits outside the grid are ignored.
    """

    def __init__(self, year, month, slot_count=3, initial_active=None, initial_standby=None):
        self.year = year
        self.month = month
        self.slot_count = max(MIN_SLOT_COUNT, int(slot_count or MIN_SLOT_COUNT))
        self.days = days_in_month(year, month)
        self.active = self._from_bitmap(initial_active)
        self.standby = self._from_bitmap(initial_standby)

    def _from_bitmap(self, bitmap):
        bitmap = list(bitmap or [])
        return [
            decode_mask_to_row(bitmap[d] if d < len(bitmap) else 0, self.slot_count)
            for d in range(self.days)
        ]

    def _grid(self, plan_type):
        if plan_type == 'active':
            return self.active
        if plan_type == 'standby':
            return self.standby
        raise ValueError(f"Unknown plan type: {plan_type}")

    def _in_range(self, day_idx, slot_idx=0):
        return 0 <= day_idx < self.days and 0 <= slot_idx < self.slot_count

    def toggle(self, plan_type, day_idx, slot_idx):
        grid = self._grid(plan_type)
        if self._in_range(day_idx, slot_idx):
            grid[day_idx][slot_idx] = not grid[day_idx][slot_idx]

    def set_day(self, plan_type, day_idx, row):
        grid = self._grid(plan_type)
        if self._in_range(day_idx):
            grid[day_idx] = _fixed_row(row, self.slot_count)

    def clear_day(self, day_idx):
        if self._in_range(day_idx):
            self.active[day_idx] = [False] * self.slot_count
            self.standby[day_idx] = [False] * self.slot_count

    def clear_all(self):
        self.active = self._from_bitmap(None)
        self.standby = self._from_bitmap(None)

    def validate_all(self):
        return validate_plan(self.active, self.standby, self.year, self.month, self.slot_count)

    def validate_day(self, day_idx):
        if not self._in_range(day_idx):
            return {'valid': True, 'codes': [], 'messages': []}
        return validate_plan_day(self.active[day_idx], self.standby[day_idx], self.slot_count)

    def build_payloads(self):
        """Per-day masks ready to store"""
        return {
            'active': [encode_row_to_mask(row) for row in self.active],
            'standby': [encode_row_to_mask(row) for row in self.standby],
        }

    @property
    def total_selected(self):
        return {
            'active': sum(sum(row) for row in self.active),
            'standby': sum(sum(row) for row in self.standby),
        }

"""
Tests for shift bitmaps, plan validation and monthly schedules
"""
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from zoneinfo import ZoneInfo

from django.core.cache import cache
from django.test import TestCase, SimpleTestCase
from django.utils import timezone
from rest_framework import status

from harvest.core.exceptions import BadRequest, Conflict, Forbidden, NotFound, ServiceError
from harvest.core.models import AuditLog
from harvest.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from . import bitmaps, services
from .models import MonthlySchedule
from .validation import (
    MESSAGES, MonthPlanner, validate_plan, validate_plan_day,
    MAX_ACTIVE_EXCEEDED, ACTIVE_EQ_2_STANDBY_GT_1, STANDBY_EQ_2_ACTIVE_GT_1, THREE_CONSECUTIVE_SELECTED,
)

# 2025-11-01 14:00 in Asia/Jerusalem
FIXED_NOW = datetime(2025, 11, 1, 12, 0, tzinfo=dt_timezone.utc)


class WeeklyBitmapTests(SimpleTestCase):
    """Tests for weekly shift masks"""

    def test_encode_weekly(self):
        """Test that morning on Sunday and night on Saturday set their bits"""
        rows = bitmaps.empty_weekly_rows()
        rows[0][0] = True
        rows[3][6] = True
        self.assertEqual(bitmaps.encode_weekly(rows), [1, 0, 0, 0, 0, 0, 8])

    def test_decode_weekly(self):
        """Test decoding a weekly mask back to rows"""
        rows = bitmaps.decode_weekly([3, 0, 0, 0, 0, 0, 8])
        self.assertTrue(rows[0][0])
        self.assertTrue(rows[1][0])
        self.assertFalse(rows[2][0])
        self.assertTrue(rows[3][6])

    def test_normalize_weekly_mask(self):
        """Test padding, clamping and non-number handling"""
        self.assertEqual(bitmaps.normalize_weekly_mask([1, 'x', 99, -3, True]), [1, 0, 15, 0, 0, 0, 0])
        self.assertEqual(len(bitmaps.normalize_weekly_mask(list(range(10)))), 7)

    def test_is_valid_weekly_mask(self):
        """Test weekly mask validity rules"""
        self.assertTrue(bitmaps.is_valid_weekly_mask([0, 1, 2, 4, 8, 15, 0]))
        self.assertFalse(bitmaps.is_valid_weekly_mask([0] * 6))
        self.assertFalse(bitmaps.is_valid_weekly_mask([True] + [0] * 6))
        self.assertFalse(bitmaps.is_valid_weekly_mask([16] + [0] * 6))

    def test_toggle_out_of_range_is_noop(self):
        """Test toggling outside the grid leaves rows unchanged"""
        rows = bitmaps.empty_weekly_rows()
        self.assertEqual(bitmaps.toggle_weekly_cell(rows, 9, 0), rows)
        toggled = bitmaps.toggle_weekly_cell(rows, 1, 2)
        self.assertTrue(toggled[1][2])
        self.assertFalse(rows[1][2])

    def test_clear_weekly_mask(self):
        """Test the cleared mask is valid and empty"""
        mask = bitmaps.clear_weekly_mask()
        self.assertEqual(mask, [0] * 7)
        self.assertTrue(bitmaps.is_valid_weekly_mask(mask))

    def test_shift_mask(self):
        """Test shift name lookup"""
        self.assertEqual(bitmaps.shift_mask('Night'), 8)
        self.assertTrue(bitmaps.mask_has_shift(5, 'evening'))
        with self.assertRaises(ValueError):
            bitmaps.shift_mask('lunch')


class MonthBitmapTests(SimpleTestCase):
    """Tests for per-day month bitmaps"""

    def test_row_mask_roundtrip_values(self):
        """Test slot rows and masks"""
        self.assertEqual(bitmaps.encode_row_to_mask([True, False, True]), 5)
        self.assertEqual(bitmaps.decode_mask_to_row(5, 4), [True, False, True, False])

    def test_days_in_month(self):
        """Test leap year February"""
        self.assertEqual(bitmaps.days_in_month(2024, 2), 29)
        self.assertEqual(bitmaps.days_in_month(2025, 2), 28)

    def test_bitmap_to_days(self):
        """Test day numbers are 1-indexed"""
        self.assertEqual(bitmaps.bitmap_to_days([0, 1, 0, 1], 2025, 11), [2, 4])
        self.assertEqual(len(bitmaps.normalize_bitmap_for_month([1, 0, 1], 2025, 2)), 28)

    def test_days_to_bitmap_ignores_invalid_days(self):
        """Test out-of-range and boolean days are dropped"""
        bitmap = bitmaps.days_to_bitmap([1, 31, 0, True], 2025, 11)
        self.assertEqual(len(bitmap), 30)
        self.assertEqual(sum(bitmap), 1)
        self.assertEqual(bitmap[0], 1)

    def test_set_operations(self):
        """Test merge, intersect and subtract"""
        a = [1, 1, 0]
        b = [0, 1, 1]
        self.assertEqual(bitmaps.merge_bitmaps(a, b, 2025, 11)[:3], [1, 1, 1])
        self.assertEqual(bitmaps.intersect_bitmaps(a, b, 2025, 11)[:3], [0, 1, 0])
        self.assertEqual(bitmaps.subtract_bitmaps(a, b, 2025, 11)[:3], [1, 0, 0])

    def test_length_and_counts(self):
        """Test length check and active counts"""
        november = [0] * 30
        november[4] = 1
        november[6] = 1
        self.assertTrue(bitmaps.is_bitmap_length_valid(november, 2025, 11))
        self.assertFalse(bitmaps.is_bitmap_length_valid(november, 2025, 12))
        self.assertEqual(bitmaps.count_active(november, 2025, 11), 2)
        self.assertEqual(bitmaps.bitmap_to_day_set(november, 2025, 11), {5, 7})

    def test_is_active_day(self):
        """Test day lookups, including days outside the month"""
        self.assertTrue(bitmaps.is_active_day([0, 1], 2, 2025, 11))
        self.assertFalse(bitmaps.is_active_day([0, 1], 1, 2025, 11))
        self.assertFalse(bitmaps.is_active_day([1] * 31, 31, 2025, 11))

    def test_day_number_if_in_month(self):
        """Test dates from other months give None"""
        self.assertEqual(bitmaps.day_number_if_in_month(datetime(2025, 11, 9).date(), 2025, 11), 9)
        self.assertIsNone(bitmaps.day_number_if_in_month(datetime(2025, 12, 9).date(), 2025, 11))

    def test_debug_summary(self):
        """Test the human readable summary"""
        self.assertEqual(bitmaps.debug_bitmap_summary([1, 0, 0, 0, 1], 2025, 11), "2025-11: 1,5")
        self.assertEqual(bitmaps.debug_bitmap_summary([], 2025, 11), "2025-11: (none)")


class PlanValidationTests(SimpleTestCase):
    """Tests for the day and month plan rules"""

    def test_three_active_shifts(self):
        """Test three active shifts break two rules"""
        result = validate_plan_day([True, True, True], [False, False, False], 3)
        self.assertFalse(result['valid'])
        self.assertEqual(result['codes'], [MAX_ACTIVE_EXCEEDED, THREE_CONSECUTIVE_SELECTED])
        self.assertEqual(result['messages'][0], "Max 2 active shifts per day.")

    def test_two_and_two(self):
        """Test two active with two standby"""
        result = validate_plan_day([True, False, True, False], [False, True, False, True], 4)
        self.assertEqual(
            result['codes'],
            [ACTIVE_EQ_2_STANDBY_GT_1, STANDBY_EQ_2_ACTIVE_GT_1, THREE_CONSECUTIVE_SELECTED],
        )

    def test_two_active_one_standby_is_valid(self):
        """Test two active plus one standby without a run of three"""
        result = validate_plan_day([True, False, True, False], [False, False, False, True], 4)
        self.assertTrue(result['valid'])
        self.assertEqual(result['codes'], [])

    def test_three_consecutive_across_types(self):
        """Test a run of three made from active and standby"""
        result = validate_plan_day([True, False, False, False], [False, True, True, False], 4)
        self.assertEqual(result['codes'], [THREE_CONSECUTIVE_SELECTED])
        self.assertEqual(result['messages'], [MESSAGES[THREE_CONSECUTIVE_SELECTED]])

    def test_no_wrap_around(self):
        """Test the last and first slots are not adjacent"""
        result = validate_plan_day([True, True, False, False], [False, False, False, True], 4)
        self.assertTrue(result['valid'])

    def test_slot_count_too_small(self):
        """Test slot counts below three are rejected"""
        with self.assertRaises(ValueError):
            validate_plan_day([True], [False], 2)

    def test_validate_month(self):
        """Test month validation reports 1-indexed days"""
        result = validate_plan([[True, True, True]], [], 2025, 2, 3)
        self.assertFalse(result['ok'])
        self.assertEqual(len(result['days']), 28)
        self.assertEqual(result['errors'][0]['day'], 1)
        self.assertEqual(result['summary'], {'invalid_day_count': 1, 'total_days': 28})


class MonthPlannerTests(SimpleTestCase):
    """Tests for the editable month planner"""

    def test_seed_toggle_and_payloads(self):
        """Test seeding from masks and toggling a slot"""
        planner = MonthPlanner(2025, 11, 3, initial_active=[5])
        self.assertEqual(planner.active[0], [True, False, True])

        planner.toggle('active', 0, 1)
        day = planner.validate_day(0)
        self.assertFalse(day['valid'])
        self.assertIn(MAX_ACTIVE_EXCEEDED, day['codes'])

        payloads = planner.build_payloads()
        self.assertEqual(payloads['active'][0], 7)
        self.assertEqual(len(payloads['active']), 30)
        self.assertEqual(planner.total_selected, {'active': 3, 'standby': 0})

    def test_out_of_range_edits_ignored(self):
        """Test edits outside the month are ignored"""
        planner = MonthPlanner(2025, 11, 3)
        planner.toggle('active', 40, 0)
        planner.set_day('standby', -1, [True, True, True])
        self.assertEqual(planner.total_selected, {'active': 0, 'standby': 0})
        self.assertTrue(planner.validate_day(40)['valid'])

    def test_clear_day(self):
        """Test clearing one day"""
        planner = MonthPlanner(2025, 11, 3, initial_active=[3], initial_standby=[4])
        planner.clear_day(0)
        self.assertEqual(planner.total_selected, {'active': 0, 'standby': 0})

    def test_unknown_plan_type(self):
        """Test an unknown grid name raises"""
        planner = MonthPlanner(2025, 11)
        with self.assertRaises(ValueError):
            planner.toggle('bogus', 0, 0)

    def test_slot_count_is_clamped(self):
        """Test slot counts below three are raised to three"""
        self.assertEqual(MonthPlanner(2025, 11, 2).slot_count, 3)


class ScheduleServiceTests(TestCase):
    """Tests for schedule storage services"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center()
        self.user = TestDataFactory.create_user(role='picker', center=self.center)

    def test_normalize_month(self):
        """Test month format checks"""
        self.assertEqual(services.normalize_month('2025-03'), '2025-03')
        with self.assertRaises(BadRequest):
            services.normalize_month('2025-3')
        with self.assertRaises(BadRequest):
            services.normalize_month('2025-13')

    def test_validate_bitmap(self):
        """Test bitmap value checks"""
        for bad in ([], [16], [True], [-1], 'abc'):
            with self.assertRaises(BadRequest):
                services.validate_bitmap(bad)

    def test_add_monthly_schedule_conflict(self):
        """Test adding the same month twice"""
        result = services.add_monthly_schedule(self.user, 'picker', self.center, '2025-11', 'active', [1] * 30)
        self.assertEqual(result['month'], '2025-11')
        self.assertEqual(result['role'], 'picker')

        with self.assertRaises(Conflict):
            services.add_monthly_schedule(self.user, 'picker', self.center, '2025-11', 'active', [0] * 30)

        services.add_monthly_schedule(
            self.user, 'picker', self.center, '2025-11', 'active', [2] * 30, overwrite_existing=True,
        )
        entry = MonthlySchedule.objects.get(schedule__user=self.user, month='2025-11', schedule_type='active')
        self.assertEqual(entry.bitmap, [2] * 30)

    def test_lock_window(self):
        """Test changes inside the next 14 days are rejected"""
        old = [0] * 30
        near = list(old)
        near[4] = 1  # Nov 5
        far = list(old)
        far[19] = 1  # Nov 20
        started = list(old)
        started[0] = 1  # Nov 1 already started

        with self.assertRaises(Forbidden):
            services.enforce_lock_window(old, near, '2025-11', 'Asia/Jerusalem', now=FIXED_NOW)
        services.enforce_lock_window(old, far, '2025-11', 'Asia/Jerusalem', now=FIXED_NOW)
        services.enforce_lock_window(old, started, '2025-11', 'Asia/Jerusalem', now=FIXED_NOW)
        services.enforce_lock_window(old, near, '2025-11', 'Asia/Jerusalem', allow_inside=True, now=FIXED_NOW)

    def test_lock_window_day_outside_month(self):
        """Test a changed 31st day of November"""
        with self.assertRaises(BadRequest):
            services.enforce_lock_window([0] * 30, [0] * 30 + [1], '2025-11', 'UTC', now=FIXED_NOW)

    def test_update_monthly_schedule(self):
        """Test updates honour the lock window"""
        services.add_monthly_schedule(self.user, 'picker', self.center, '2025-11', 'active', [0] * 30)

        far = [0] * 30
        far[19] = 4
        result = services.update_monthly_schedule(self.user, self.center, '2025-11', 'active', far, now=FIXED_NOW)
        self.assertEqual(result['bitmap'][19], 4)

        near = list(far)
        near[4] = 1
        with self.assertRaises(Forbidden):
            services.update_monthly_schedule(self.user, self.center, '2025-11', 'active', near, now=FIXED_NOW)

        services.update_monthly_schedule(
            self.user, self.center, '2025-11', 'active', near, can_bypass_lock=True, now=FIXED_NOW,
        )

    def test_update_missing_month(self):
        """Test updating a month that was never added"""
        with self.assertRaises(NotFound):
            services.update_monthly_schedule(self.user, self.center, '2025-11', 'active', [0] * 30)

    def test_schedule_for_user_month_empty(self):
        """Test an empty month returns empty bitmaps"""
        result = services.get_schedule_for_user_month(self.user, self.center, '2025-11')
        self.assertEqual(result['active'], [])
        self.assertEqual(result['standby'], [])

    def test_workers_for_shift(self):
        """Test workers are matched on the shift bit"""
        other = TestDataFactory.create_user(role='picker', center=self.center)
        bitmap_a = [0] * 30
        bitmap_a[2] = 1  # morning on Nov 3
        bitmap_b = [0] * 30
        bitmap_b[2] = 2  # afternoon on Nov 3
        TestDataFactory.create_schedule(self.user, '2025-11', active=bitmap_a)
        TestDataFactory.create_schedule(other, '2025-11', active=bitmap_b)

        result = services.get_workers_for_shift('picker', 'morning', '2025-11-03', 'active', self.center)
        self.assertEqual([w['user_id'] for w in result['workers']], [self.user.id])

        by_date = services.get_schedule_by_role_and_date('picker', '2025-11-03', self.center)
        self.assertEqual(len(by_date['records']), 2)
        self.assertEqual(by_date['day_index'], 2)

        with self.assertRaises(BadRequest):
            services.get_workers_for_shift('picker', 'lunch', '2025-11-03', 'active', self.center)

    def test_is_active_now(self):
        """Test the active flag follows the running shift"""
        TestDataFactory.create_shift_configs(self.center)
        bitmap = [0] * 30
        bitmap[2] = 1
        TestDataFactory.create_schedule(self.user, '2025-11', active=bitmap)

        # 10:00 local on Nov 3 is the morning shift
        now = datetime(2025, 11, 3, 8, 0, tzinfo=dt_timezone.utc)
        result = services.get_is_active_now(self.user, self.center, now=now)
        self.assertEqual(result['shift_name'], 'morning')
        self.assertEqual(result['date'], '2025-11-03')
        self.assertTrue(result['is_active'])

        # 14:00 local is the afternoon shift
        later = datetime(2025, 11, 3, 12, 0, tzinfo=dt_timezone.utc)
        self.assertFalse(services.get_is_active_now(self.user, self.center, now=later)['is_active'])

    def test_submit_invalid_plan(self):
        """Test an invalid plan is rejected with details"""
        with self.assertRaises(ServiceError) as ctx:
            services.submit_month_plan(self.user, 'picker', self.center, 2025, 11, [[True, True, True]], [], 3)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.details['errors'][0]['day'], 1)
        self.assertFalse(MonthlySchedule.objects.exists())

    def test_submit_valid_plan(self):
        """Test a valid plan stores both bitmaps"""
        result = services.submit_month_plan(self.user, 'picker', self.center, 2025, 11, [5, 1], [0, 2], 3)
        self.assertEqual(result['active'][:2], [5, 1])
        self.assertEqual(result['standby'][:2], [0, 2])
        self.assertEqual(len(result['active']), 30)
        self.assertEqual(MonthlySchedule.objects.filter(schedule__user=self.user).count(), 2)


class ScheduleAPITests(TestCase):
    """Tests for schedule API endpoints"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center()
        self.worker = TestDataFactory.create_user(role='picker', center=self.center)
        self.manager = TestDataFactory.create_user(role='opManager', center=self.center)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.worker)

    def _month_days(self, day):
        return f"{day.year:04d}-{day.month:02d}", bitmaps.days_in_month(day.year, day.month)

    def test_add_month(self):
        """Test adding a month via API"""
        data = {'month': '2030-01', 'schedule_type': 'active', 'bitmap': [1] * 31}
        response = self.client.post('/api/v1/schedule/month/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user_id'], self.worker.id)
        self.assertTrue(AuditLog.objects.filter(action='schedule_add').exists())

        response = self.client.post('/api/v1/schedule/month/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('error', response.data)

    def test_add_month_invalid_format(self):
        """Test a malformed month"""
        data = {'month': '2030-1', 'schedule_type': 'active', 'bitmap': [1]}
        response = self.client.post('/api/v1/schedule/month/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_inside_lock_window(self):
        """Test workers cannot change days inside the lock window but managers can"""
        target = timezone.now().astimezone(ZoneInfo('Asia/Jerusalem')).date() + timedelta(days=3)
        month, dim = self._month_days(target)
        bitmap = [0] * dim
        response = self.client.post(
            '/api/v1/schedule/month/', {'month': month, 'schedule_type': 'active', 'bitmap': bitmap}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        changed = list(bitmap)
        changed[target.day - 1] = 1
        data = {'month': month, 'schedule_type': 'active', 'bitmap': changed}
        response = self.client.patch('/api/v1/schedule/month/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.patch(
            '/api/v1/schedule/month/', {**data, 'user_id': self.worker.id}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['bitmap'][target.day - 1], 1)

    def test_update_outside_lock_window(self):
        """Test workers can change days far ahead"""
        month = f"{timezone.now().year + 1}-06"
        self.client.post(
            '/api/v1/schedule/month/', {'month': month, 'schedule_type': 'standby', 'bitmap': [0] * 30},
            format='json',
        )
        response = self.client.patch(
            '/api/v1/schedule/month/', {'month': month, 'schedule_type': 'standby', 'bitmap': [2] * 30},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_my_schedule_requires_month(self):
        """Test the month query param is required"""
        response = self.client.get('/api/v1/schedule/my/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/schedule/my/?month=2030-01')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['active'], [])

    def test_user_schedule_forbidden_for_other_users(self):
        """Test workers cannot read another user's schedule"""
        response = self.client.get(f'/api/v1/schedule/user/{self.manager.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_schedule_not_found(self):
        """Test a user without a schedule"""
        response = self.client.get(f'/api/v1/schedule/user/{self.worker.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_by_role_manager_only(self):
        """Test role queries are for managers"""
        response = self.client.get('/api/v1/schedule/by-role/?role=picker&date=2030-01-05')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/schedule/by-role/?role=picker&date=2030-01-05')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['month'], '2030-01')

        response = self.client.get('/api/v1/schedule/by-role/?role=picker&date=05-01-2030')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_workers_endpoint(self):
        """Test workers-for-shift lookup via API"""
        bitmap = [0] * 31
        bitmap[4] = 8
        TestDataFactory.create_schedule(self.worker, '2030-01', active=bitmap)
        self.client.authenticate_user(self.manager)
        response = self.client.get(
            '/api/v1/schedule/workers/?role=picker&shift=night&date=2030-01-05&schedule_type=active'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['workers'][0]['user_id'], self.worker.id)

    def test_plan_validate(self):
        """Test dry-run plan validation"""
        data = {'year': 2030, 'month': 1, 'slot_count': 3, 'active': [[True, True, True]], 'standby': []}
        response = self.client.post('/api/v1/schedule/plan/validate/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['validation']['ok'])
        self.assertEqual(response.data['payloads']['active'][0], 7)
        self.assertFalse(MonthlySchedule.objects.exists())

    def test_plan_submit(self):
        """Test storing and rejecting plans"""
        bad = {'year': 2030, 'month': 1, 'slot_count': 3, 'active': [7], 'standby': []}
        response = self.client.post('/api/v1/schedule/plan/', bad, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('details', response.data)

        good = {'year': 2030, 'month': 1, 'slot_count': 3, 'active': [1, 2], 'standby': [4]}
        response = self.client.post('/api/v1/schedule/plan/', good, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['month'], '2030-01')
        self.assertTrue(AuditLog.objects.filter(action='schedule_plan_submit').exists())

    def test_unauthenticated(self):
        """Test endpoints require authentication"""
        self.client.logout()
        response = self.client.get('/api/v1/schedule/my/?month=2030-01')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_active_now_validates_target(self):
        """Test a malformed user_id is a 400 and a valid one targets that user"""
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/schedule/active-now/?user_id=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('user_id', response.data)

        response = self.client.get(f'/api/v1/schedule/active-now/?user_id={self.worker.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_id'], self.worker.id)
        self.assertFalse(response.data['is_active'])

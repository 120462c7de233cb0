"""
Tests for logistics centers and shift windows
"""
from datetime import date, datetime
from datetime import timezone as dt_timezone
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from harvest.core.exceptions import NotFound
from harvest.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from . import shifts
from .models import LogisticsCenter, ShiftConfig

# 10:00 on 2025-11-03 in Asia/Jerusalem
MORNING_NOW = datetime(2025, 11, 3, 8, 0, tzinfo=dt_timezone.utc)


class WindowMathTests(SimpleTestCase):
    """Tests for minute window helpers"""

    def test_normalize_window_wraps(self):
        """Test a window crossing midnight"""
        window = shifts.normalize_window(1380, 120)
        self.assertTrue(window['wraps_midnight'])
        self.assertEqual(window['duration_min'], 180)
        self.assertEqual(shifts.normalize_window(360, 720)['duration_min'], 360)

    def test_minute_in_window(self):
        """Test half-open and wrapped windows"""
        self.assertTrue(shifts.is_minute_in_window(360, 360, 720))
        self.assertFalse(shifts.is_minute_in_window(720, 360, 720))
        self.assertTrue(shifts.is_minute_in_window(30, 1380, 120))
        self.assertFalse(shifts.is_minute_in_window(200, 1380, 120))

    def test_utc_range(self):
        """Test converting a local window to UTC"""
        result = shifts.shift_minutes_to_utc_range('Asia/Jerusalem', 360, 720, now=MORNING_NOW)
        self.assertEqual(result['start_iso'], '2025-11-03T04:00:00+00:00')
        self.assertEqual(result['end_iso'], '2025-11-03T10:00:00+00:00')

    def test_utc_range_wrapped(self):
        """Test a wrapped window ends the next day"""
        result = shifts.shift_minutes_to_utc_range('UTC', 1320, 120, now=MORNING_NOW)
        self.assertEqual(result['start_iso'], '2025-11-03T22:00:00+00:00')
        self.assertEqual(result['end_iso'], '2025-11-04T02:00:00+00:00')

    def test_utc_range_wrapped_after_midnight(self):
        """Test a wrapped window still running after midnight started yesterday"""
        two_am_local = datetime(2025, 11, 3, 0, 0, tzinfo=dt_timezone.utc)
        result = shifts.shift_minutes_to_utc_range('Asia/Jerusalem', 1320, 360, now=two_am_local)
        self.assertEqual(result['start_iso'], '2025-11-02T20:00:00+00:00')
        self.assertEqual(result['end_iso'], '2025-11-03T04:00:00+00:00')

        # Past the end of the window the next one is returned
        seven_am_local = datetime(2025, 11, 3, 5, 0, tzinfo=dt_timezone.utc)
        result = shifts.shift_minutes_to_utc_range('Asia/Jerusalem', 1320, 360, now=seven_am_local)
        self.assertEqual(result['start_iso'], '2025-11-03T20:00:00+00:00')


class ClockShiftTests(SimpleTestCase):
    """Tests for fixed clock shifts used by order creation"""

    def test_evening_window(self):
        """Test evening ends at the next midnight"""
        start, end = shifts.shift_window_for(date(2025, 11, 3), 'evening', 'UTC')
        self.assertEqual(start, datetime(2025, 11, 3, 18, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(end, datetime(2025, 11, 4, 0, 0, tzinfo=dt_timezone.utc))

    def test_shift_state(self):
        """Test past, current and future checks"""
        now = datetime(2025, 11, 3, 13, 0, tzinfo=dt_timezone.utc)
        day = date(2025, 11, 3)
        self.assertTrue(shifts.is_shift_past(day, 'morning', now, 'UTC'))
        self.assertTrue(shifts.is_shift_current(day, 'afternoon', now, 'UTC'))
        self.assertTrue(shifts.is_shift_future(day, 'evening', now, 'UTC'))
        self.assertTrue(shifts.is_shift_started(day, 'night', now, 'UTC'))

    def test_compare_shift(self):
        """Test night sorts first inside a day"""
        self.assertLess(shifts.compare_shift('night', 'morning'), 0)
        self.assertGreater(shifts.compare_shift('evening', 'afternoon'), 0)
        with self.assertRaises(ValueError):
            shifts.compare_shift('lunch', 'morning')

    def test_order_options(self):
        """Test only shifts that have not started can be ordered"""
        now = datetime(2025, 11, 3, 13, 0, tzinfo=dt_timezone.utc)
        options = shifts.get_create_order_options(now=now, horizon_days=0, tz_name='UTC')
        self.assertEqual([o['shift'] for o in options], ['morning', 'afternoon', 'evening', 'night'])
        self.assertEqual([o['can_add'] for o in options], [False, False, True, False])

        tomorrow = shifts.get_create_order_options(now=now, horizon_days=1, tz_name='UTC')[4:]
        self.assertTrue(all(o['can_add'] for o in tomorrow))

    def test_current_and_upcoming(self):
        """Test windows that already ended are dropped"""
        now = datetime(2025, 11, 3, 13, 0, tzinfo=dt_timezone.utc)
        windows = shifts.get_current_and_upcoming_shift_windows(now=now, horizon_days=0, tz_name='UTC')
        self.assertEqual([w['shift'] for w in windows], ['afternoon', 'evening'])


class ConfiguredShiftTests(TestCase):
    """Tests for per-center shift configuration lookups"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center()
        TestDataFactory.create_shift_configs(self.center)

    def test_current_shift(self):
        """Test the running shift by local time"""
        self.assertEqual(shifts.get_current_shift(self.center.id, MORNING_NOW), 'morning')
        # 01:30 local on Nov 4
        late = datetime(2025, 11, 3, 23, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(shifts.get_current_shift(self.center.id, late), 'night')

    def test_current_shift_without_configs(self):
        """Test a center with no shifts"""
        other = TestDataFactory.create_center()
        self.assertEqual(shifts.get_current_shift(other.id, MORNING_NOW), shifts.NO_SHIFT)

    def test_next_available_shifts(self):
        """Test upcoming shifts roll over to the next day"""
        result = shifts.get_next_available_shifts(self.center.id, count=3, from_ts=MORNING_NOW)
        self.assertEqual(result, [
            {'date': '2025-11-03', 'name': 'afternoon'},
            {'date': '2025-11-03', 'name': 'evening'},
            {'date': '2025-11-04', 'name': 'night'},
        ])

    def test_next_available_shifts_without_configs(self):
        """Test a center without configs"""
        other = TestDataFactory.create_center()
        with self.assertRaises(NotFound):
            shifts.get_next_available_shifts(other.id)

    def test_shift_config_lookup(self):
        """Test fetching a missing config"""
        self.assertEqual(shifts.get_shift_config(self.center.id, 'night')['general_end_min'], 360)
        ShiftConfig.objects.filter(logistics_center=self.center, name='night').delete()
        shifts.invalidate_shift_configs(self.center.id)
        with self.assertRaises(NotFound):
            shifts.get_shift_config(self.center.id, 'night')

    def test_current_shift_window(self):
        """Test the current window in UTC"""
        result = shifts.get_current_shift_window(self.center.id, MORNING_NOW)
        self.assertEqual(result['shift_name'], 'morning')
        self.assertEqual(result['start_iso'], '2025-11-03T04:00:00+00:00')

    def test_cache_invalidated_on_save(self):
        """Test editing a config drops the cached rows"""
        self.assertEqual(shifts.get_current_shift(self.center.id, MORNING_NOW), 'morning')
        config = ShiftConfig.objects.get(logistics_center=self.center, name='morning')
        config.general_end_min = 540
        config.save()
        self.assertEqual(shifts.get_current_shift(self.center.id, MORNING_NOW), shifts.NO_SHIFT)

    def test_list_windows_in_display_order(self):
        """Test windows are listed morning first"""
        windows = shifts.list_shift_windows(self.center.id)
        self.assertEqual([w['name'] for w in windows], ['morning', 'afternoon', 'evening', 'night'])
        self.assertEqual(windows[0]['delivery_slot']['slot_size_min'], 30)


class CenterAPITests(TestCase):
    """Tests for center and shift endpoints"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center(code='LC-T')
        TestDataFactory.create_shift_configs(self.center)
        self.manager = TestDataFactory.create_user(role='opManager', center=self.center)
        self.worker = TestDataFactory.create_user(role='worker', center=self.center)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_list_centers(self):
        """Test listing active centers"""
        LogisticsCenter.objects.create(name='Closed', code='LC-X', is_active=False)
        response = self.client.get('/api/v1/centers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['code'] for c in response.data], ['LC-T'])

    def test_create_center(self):
        """Test managers can create centers"""
        data = {'name': 'South Hub', 'code': 'LC-S', 'timezone': 'Europe/Berlin'}
        response = self.client.post('/api/v1/centers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['timezone'], 'Europe/Berlin')

    def test_create_center_bad_timezone(self):
        """Test an unknown timezone is rejected"""
        data = {'name': 'South Hub', 'code': 'LC-S', 'timezone': 'Mars/Olympus'}
        response = self.client.post('/api/v1/centers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_center_forbidden_for_workers(self):
        """Test workers cannot create centers"""
        self.client.authenticate_user(self.worker)
        response = self.client.post('/api/v1/centers/', {'name': 'X', 'code': 'LC-Y'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_center_shifts(self):
        """Test listing normalized windows"""
        response = self.client.get(f'/api/v1/centers/{self.center.id}/shifts/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 4)
        self.assertFalse(response.data[0]['general']['wraps_midnight'])

    def test_upsert_shift_config(self):
        """Test updating one shift config by name"""
        data = {'name': 'morning', 'general_start_min': 300}
        response = self.client.post(f'/api/v1/centers/{self.center.id}/shifts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['general']['start_min'], 300)

        ShiftConfig.objects.filter(logistics_center=self.center, name='night').delete()
        data = {
            'name': 'night',
            'general_start_min': 1320, 'general_end_min': 360,
            'industrial_deliverer_start_min': 1320, 'industrial_deliverer_end_min': 360,
            'deliverer_start_min': 1320, 'deliverer_end_min': 360,
            'delivery_slot_start_min': 0, 'delivery_slot_end_min': 360,
        }
        response = self.client.post(f'/api/v1/centers/{self.center.id}/shifts/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['general']['wraps_midnight'])

    def test_upsert_shift_config_forbidden(self):
        """Test workers cannot change shift configuration"""
        self.client.authenticate_user(self.worker)
        response = self.client.post(
            f'/api/v1/centers/{self.center.id}/shifts/', {'name': 'morning', 'general_start_min': 300}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_current_shift_endpoint(self):
        """Test the current shift endpoint"""
        response = self.client.get(f'/api/v1/centers/{self.center.id}/shifts/current/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(response.data['shift_name'], shifts.SHIFT_ORDER)

    def test_next_shifts_endpoint(self):
        """Test upcoming shifts from a given time"""
        response = self.client.get(
            f'/api/v1/centers/{self.center.id}/shifts/next/?count=2&from=2025-11-03T10:00:00'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['name'] for s in response.data], ['afternoon', 'evening'])

        response = self.client.get(f'/api/v1/centers/{self.center.id}/shifts/next/?from=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_order_options_endpoint(self):
        """Test order shift options use the user's center timezone"""
        response = self.client.get('/api/v1/shifts/order-options/?horizon_days=0')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['timezone'], 'Asia/Jerusalem')
        self.assertEqual(len(response.data['options']), 4)


class SeedShiftConfigsCommandTests(TestCase):
    """Tests for the seed_shift_configs command"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center(code='LC-SEED')

    def test_seed_for_center(self):
        """Test seeding the bundled file into one center"""
        out = StringIO()
        call_command('seed_shift_configs', '--center', 'LC-SEED', stdout=out)
        self.assertEqual(ShiftConfig.objects.filter(logistics_center=self.center).count(), 4)
        self.assertIn('SUMMARY', out.getvalue())
        self.assertEqual(shifts.get_current_shift(self.center.id, MORNING_NOW), 'morning')

    def test_unknown_center_rows_are_skipped(self):
        """Test rows for a missing center code"""
        out = StringIO()
        call_command('seed_shift_configs', '--center', 'LC-NONE', stdout=out)
        self.assertFalse(ShiftConfig.objects.exists())
        self.assertIn('Rows skipped: 4', out.getvalue())

    def test_replace_mode_clears_existing(self):
        """Test replace mode drops rows not in the file"""
        TestDataFactory.create_shift_configs(self.center)
        call_command('seed_shift_configs', '--center', 'LC-SEED', stdout=StringIO())
        self.assertEqual(ShiftConfig.objects.filter(logistics_center=self.center).count(), 4)
        self.assertEqual(
            ShiftConfig.objects.get(logistics_center=self.center, name='morning').industrial_deliverer_start_min,
            300,
        )

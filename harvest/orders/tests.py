"""
Tests for orders
"""
from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from harvest.core.exceptions import BadRequest
from harvest.core.models import AuditLog
from harvest.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from . import services
from .models import Order, OrderItem, line_errors


def local_today(tz_name='Asia/Jerusalem'):
    return timezone.now().astimezone(ZoneInfo(tz_name)).date()


class OrderLineTests(TestCase):
    """Tests for order line rules and totals"""

    def test_line_errors_by_mode(self):
        """Test the quantity rules of each unit mode"""
        self.assertEqual(line_errors('kg', 2), {})
        self.assertIn('quantity_kg', line_errors('kg', 0))
        self.assertIn('units', line_errors('kg', 2, units=3, avg_weight_per_unit_kg=0.1))
        self.assertIn('avg_weight_per_unit_kg', line_errors('unit', units=4))
        self.assertEqual(line_errors('unit', units=4, avg_weight_per_unit_kg=0.2), {})
        self.assertIn('quantity_kg', line_errors('mixed'))
        self.assertEqual(line_errors('mixed', 1.5, 2, 0.25), {})
        self.assertIn('unit_mode', line_errors('crate', 1))

    def test_effective_kg_and_subtotal(self):
        """Test mixed line totals"""
        line = OrderItem(
            unit_mode='mixed', quantity_kg=1.5, units=4, avg_weight_per_unit_kg=0.25, price_per_kg=Decimal('10.00'),
        )
        self.assertEqual(line.estimated_effective_kg(), 2.5)
        self.assertEqual(line.line_subtotal(), Decimal('25.00'))

    def test_subtotal_rounds_half_up(self):
        """Test cents are rounded half up"""
        line = OrderItem(unit_mode='kg', quantity_kg=0.125, price_per_kg=Decimal('1.00'))
        self.assertEqual(line.line_subtotal(), Decimal('0.13'))

    def test_clean(self):
        """Test model validation uses the same rules"""
        with self.assertRaises(ValidationError):
            OrderItem(unit_mode='unit', units=0).clean()

    def test_order_totals(self):
        """Test order subtotal and weight"""
        center = TestDataFactory.create_center()
        customer = TestDataFactory.create_user(role='customer', center=center)
        tomato = TestDataFactory.create_item(price_per_kg=Decimal('8.00'))
        apple = TestDataFactory.create_item(type='Apple', avg_weight_per_unit_gr=200, price_per_kg=Decimal('12.00'))
        order = TestDataFactory.create_order(customer, center, date(2030, 1, 5), items=[
            (tomato, 2),
            {'item': apple, 'unit_mode': 'unit', 'units': 5, 'avg_weight_per_unit_kg': 0.2},
        ])
        self.assertEqual(order.total_weight_kg, 3.0)
        self.assertEqual(order.items_subtotal, Decimal('28.00'))


class OrderServiceTests(TestCase):
    """Tests for order services"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center()
        self.customer = TestDataFactory.create_user(role='customer', center=self.center)
        self.item = TestDataFactory.create_item()

    def test_parse_date(self):
        """Test date parsing"""
        self.assertEqual(services.parse_date('2030-01-05'), date(2030, 1, 5))
        with self.assertRaises(BadRequest):
            services.parse_date('05/01/2030', 'delivery_date')

    def test_shift_must_not_have_started(self):
        """Test ordering into a started shift"""
        # 13:00 local on Nov 3
        now = datetime(2025, 11, 3, 11, 0, tzinfo=dt_timezone.utc)
        day = date(2025, 11, 3)
        services.ensure_shift_open_for_orders(self.center, day, 'evening', now=now)
        with self.assertRaises(BadRequest):
            services.ensure_shift_open_for_orders(self.center, day, 'afternoon', now=now)
        with self.assertRaises(BadRequest):
            services.ensure_shift_open_for_orders(self.center, day, 'brunch', now=now)

    def test_list_orders_for_shift(self):
        """Test open orders of one shift, oldest first"""
        day = date(2030, 1, 5)
        first = TestDataFactory.create_order(self.customer, self.center, day, items=[(self.item, 1)])
        second = TestDataFactory.create_order(self.customer, self.center, day, items=[(self.item, 2)])
        TestDataFactory.create_order(self.customer, self.center, day, items=[(self.item, 1)], status='cancelled')
        TestDataFactory.create_order(self.customer, self.center, day, shift_name='evening', items=[(self.item, 1)])

        orders = list(services.list_orders_for_shift(self.center, '2030-01-05', 'morning'))
        self.assertEqual([o.id for o in orders], [first.id, second.id])

    def test_packing_plan_for_order(self):
        """Test the packing plan of a stored order"""
        TestDataFactory.create_package_sizes()
        order = TestDataFactory.create_order(self.customer, self.center, date(2030, 1, 5), items=[(self.item, 3)])
        plan = services.build_order_packing_plan(order)
        self.assertEqual(plan['summary']['total_boxes'], 1)
        self.assertEqual(plan['boxes'][0]['box_type'], 'Small')


class OrderAPITests(TestCase):
    """Tests for order endpoints"""

    def setUp(self):
        cache.clear()
        self.center = TestDataFactory.create_center()
        self.customer = TestDataFactory.create_user(role='customer', center=self.center)
        self.other_customer = TestDataFactory.create_user(role='customer', center=self.center)
        self.manager = TestDataFactory.create_user(role='opManager', center=self.center)
        self.tomato = TestDataFactory.create_item(name='Tomato', price_per_kg=Decimal('9.90'))
        self.apple = TestDataFactory.create_item(name='Apple', type='Apple', avg_weight_per_unit_gr=180)
        self.delivery_date = local_today() + timedelta(days=3)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.customer)

    def order_payload(self, **overrides):
        data = {
            'shift_name': 'morning',
            'delivery_date': self.delivery_date.isoformat(),
            'delivery_address': '1 Market St',
            'items': [{'item': self.tomato.id, 'unit_mode': 'kg', 'quantity_kg': 2}],
        }
        data.update(overrides)
        return data

    def test_create_order(self):
        """Test creating an order snapshots catalog values"""
        response = self.client.post('/api/v1/orders/', self.order_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer'], self.customer.id)
        self.assertEqual(response.data['logistics_center'], self.center.id)
        self.assertEqual(response.data['status'], 'pending')
        line = response.data['items'][0]
        self.assertEqual(line['name'], 'Tomato')
        self.assertEqual(line['price_per_kg'], '9.90')
        self.assertEqual(line['line_subtotal'], '19.80')

    def test_create_unit_line_uses_item_weight(self):
        """Test unit lines pick up the catalog unit weight"""
        items = [{'item': self.apple.id, 'unit_mode': 'unit', 'units': 10}]
        response = self.client.post('/api/v1/orders/', self.order_payload(items=items), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['items'][0]['avg_weight_per_unit_kg'], 0.18)
        self.assertEqual(response.data['total_weight_kg'], 1.8)

    def test_create_order_invalid_line(self):
        """Test a kg line without a quantity"""
        items = [{'item': self.tomato.id, 'unit_mode': 'kg'}]
        response = self.client.post('/api/v1/orders/', self.order_payload(items=items), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_create_order_without_items(self):
        """Test an order needs at least one line"""
        response = self.client.post('/api/v1/orders/', self.order_payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_order_inactive_item(self):
        """Test inactive items cannot be ordered"""
        self.tomato.is_active = False
        self.tomato.save()
        response = self.client.post('/api/v1/orders/', self.order_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_order_for_past_shift(self):
        """Test a shift that already started"""
        past = (local_today() - timedelta(days=1)).isoformat()
        response = self.client.post('/api/v1/orders/', self.order_payload(delivery_date=past), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertFalse(Order.objects.exists())

    def test_customers_only_see_their_orders(self):
        """Test list and detail visibility"""
        own = TestDataFactory.create_order(self.customer, self.center, self.delivery_date, items=[(self.tomato, 1)])
        other = TestDataFactory.create_order(
            self.other_customer, self.center, self.delivery_date, items=[(self.tomato, 1)],
        )

        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([o['id'] for o in response.data], [own.id])

        response = self.client.get(f'/api/v1/orders/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.get(f'/api/v1/orders/?customer={self.other_customer.id}')
        self.assertEqual([o['id'] for o in response.data], [other.id])

    def test_filter_by_status(self):
        """Test the status filter"""
        TestDataFactory.create_order(self.customer, self.center, self.delivery_date, items=[(self.tomato, 1)])
        TestDataFactory.create_order(
            self.customer, self.center, self.delivery_date, items=[(self.tomato, 1)], status='delivered',
        )
        response = self.client.get('/api/v1/orders/?status=delivered')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['status'], 'delivered')

    def test_manager_updates_status(self):
        """Test status changes are audited"""
        order = TestDataFactory.create_order(self.customer, self.center, self.delivery_date, items=[(self.tomato, 1)])

        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        log = AuditLog.objects.get(action='order_status_change')
        self.assertEqual(log.changes, {'from': 'pending', 'to': 'confirmed'})

    def test_orders_for_shift(self):
        """Test the manager shift view"""
        TestDataFactory.create_order(self.customer, self.center, self.delivery_date, items=[(self.tomato, 1)])
        url = f'/api/v1/orders/shift/?date={self.delivery_date.isoformat()}&shift_name=morning'

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/orders/shift/?shift_name=morning')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_packing_plan_endpoint(self):
        """Test the packing plan preview"""
        TestDataFactory.create_package_sizes()
        order = TestDataFactory.create_order(self.customer, self.center, self.delivery_date, items=[(self.tomato, 12)])
        response = self.client.get(f'/api/v1/orders/{order.id}/packing-plan/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_id'], order.id)
        self.assertEqual(response.data['plan']['summary']['by_item'][0]['bags'], 3)

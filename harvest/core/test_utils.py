"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from harvest.centers.models import LogisticsCenter, ShiftConfig
from harvest.catalog.models import Item, PackageSize, ContainerSize, ItemPacking
from harvest.orders.models import Order, OrderItem
from harvest.scheduling.models import Schedule, MonthlySchedule
from decimal import Decimal
import random
import string

User = get_user_model()

# (name, general start, general end) in minutes since local midnight
DEFAULT_SHIFTS = [
    ('morning', 360, 720),
    ('afternoon', 720, 1080),
    ('evening', 1080, 1440),
    ('night', 0, 360),
]


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_center(name=None, code=None, timezone='Asia/Jerusalem'):
        """Create a test logistics center"""
        if not name:
            name = f'Center_{TestDataFactory.random_string(6)}'
        if not code:
            code = f'LC_{TestDataFactory.random_string(6).upper()}'
        return LogisticsCenter.objects.create(name=name, code=code, address=f'Test Address {name}', timezone=timezone)

    @staticmethod
    def create_user(username=None, role='worker', center=None, password='testpass123', is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        return User.objects.create_user(
            username=username,
            email=f'{username}@test.com',
            password=password,
            role=role,
            logistics_center=center,
            is_superuser=is_superuser,
        )

    @staticmethod
    def create_shift_configs(center, timezone=None):
        """Create the four default shifts for a center"""
        configs = []
        for name, start, end in DEFAULT_SHIFTS:
            configs.append(ShiftConfig.objects.create(
                logistics_center=center,
                name=name,
                timezone=timezone or center.timezone,
                general_start_min=start,
                general_end_min=end,
                industrial_deliverer_start_min=start,
                industrial_deliverer_end_min=end,
                deliverer_start_min=start,
                deliverer_end_min=end,
                delivery_slot_start_min=start,
                delivery_slot_end_min=end,
                slot_size_min=30,
            ))
        return configs

    @staticmethod
    def create_item(name=None, category='vegetable', type='Tomato', variety='', avg_weight_per_unit_gr=None,
                    price_per_kg=Decimal('10.00')):
        """Create a test item"""
        if not name:
            name = f'Item_{TestDataFactory.random_string(6)}'
        return Item.objects.create(
            name=name,
            category=category,
            type=type,
            variety=variety,
            avg_weight_per_unit_gr=avg_weight_per_unit_gr,
            price_per_kg=price_per_kg,
        )

    @staticmethod
    def create_package_sizes():
        """Small / Medium / Large boxes plus a vented Medium"""
        rows = [
            ('Small', 30, 20, 15, 6, False),
            ('Medium', 40, 30, 20, 12, False),
            ('Large', 60, 40, 30, 20, False),
            ('Medium-Vented', 40, 30, 20, 10, True),
        ]
        return [
            PackageSize.objects.create(
                key=key, name=f'{key} box', inner_length_cm=l, inner_width_cm=w, inner_height_cm=h,
                headroom_pct=0.1, max_weight_kg=max_kg, vented=vented, max_skus_per_box=6,
            )
            for key, l, w, h, max_kg, vented in rows
        ]

    @staticmethod
    def create_container_size(key=None, length=60, width=40, height=24, max_weight_kg=20):
        """Create a test delivery crate"""
        if not key:
            key = f'crate-{TestDataFactory.random_string(4).lower()}'
        return ContainerSize.objects.create(
            key=key, name=f'Crate {key}', inner_length_cm=length, inner_width_cm=width,
            inner_height_cm=height, headroom_pct=0.1, max_weight_kg=max_weight_kg,
        )

    @staticmethod
    def create_item_packing(item, **overrides):
        """Attach packing rules to an item"""
        return ItemPacking.objects.create(item=item, **overrides)

    @staticmethod
    def create_order(customer, center, delivery_date, shift_name='morning', items=None, status='pending'):
        """
        Create an order; ``items`` is a list of (item, quantity_kg) or
        dicts of OrderItem fields.
        """
        order = Order.objects.create(
            customer=customer,
            logistics_center=center,
            delivery_date=delivery_date,
            shift_name=shift_name,
            status=status,
        )
        for line in items or []:
            if isinstance(line, dict):
                fields = dict(line)
            else:
                item, quantity_kg = line
                fields = {'item': item, 'quantity_kg': quantity_kg, 'unit_mode': 'kg'}
            fields.setdefault('name', fields['item'].name)
            fields.setdefault('price_per_kg', fields['item'].price_per_kg)
            OrderItem.objects.create(order=order, **fields)
        return order

    @staticmethod
    def create_schedule(user, month, active=None, standby=None, role=None, center=None):
        """Create a schedule with one month of active/standby bitmaps"""
        schedule, _ = Schedule.objects.get_or_create(
            user=user,
            logistics_center=center if center is not None else user.logistics_center,
            defaults={'role': role or user.role},
        )
        for schedule_type, bitmap in (('active', active), ('standby', standby)):
            if bitmap is not None:
                MonthlySchedule.objects.create(
                    schedule=schedule, schedule_type=schedule_type, month=month, bitmap=bitmap,
                )
        return schedule


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()

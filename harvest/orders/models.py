from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


def line_errors(unit_mode, quantity_kg=None, units=None, avg_weight_per_unit_kg=None):
    """
    Field errors of an order line for its unit mode.

    kg lines need quantity_kg, unit lines need units and a unit weight,
    mixed lines need at least one of the two (and the unit weight when
    units are ordered).
    """
    errors = {}
    qty = quantity_kg or 0
    count = units or 0

    if unit_mode == 'kg':
        if qty <= 0:
            errors['quantity_kg'] = 'quantity_kg must be > 0 for kg lines'
        if count:
            errors['units'] = 'units are not allowed for kg lines'
    elif unit_mode == 'unit':
        if count <= 0:
            errors['units'] = 'units must be > 0 for unit lines'
        if qty:
            errors['quantity_kg'] = 'quantity_kg is not allowed for unit lines'
    elif unit_mode == 'mixed':
        if qty <= 0 and count <= 0:
            errors['quantity_kg'] = 'mixed lines need quantity_kg or units'
    else:
        errors['unit_mode'] = f'Unknown unit mode: {unit_mode}'

    if count > 0 and not (avg_weight_per_unit_kg and avg_weight_per_unit_kg > 0):
        errors['avg_weight_per_unit_kg'] = 'avg_weight_per_unit_kg must be > 0 when units are ordered'
    return errors


class Order(models.Model):
    """Customer order delivered in one shift"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('packing', 'Packing'),
        ('ready', 'Ready'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
    ]
    SHIFT_NAME_CHOICES = [
        ('morning', 'Morning'),
        ('afternoon', 'Afternoon'),
        ('evening', 'Evening'),
        ('night', 'Night'),
    ]

    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')
    logistics_center = models.ForeignKey('centers.LogisticsCenter', on_delete=models.PROTECT, related_name='orders')
    shift_name = models.CharField(max_length=20, choices=SHIFT_NAME_CHOICES)
    delivery_date = models.DateField()
    delivery_address = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def items_subtotal(self):
        return sum((line.line_subtotal() for line in self.items.all()), Decimal('0.00'))

    @property
    def total_weight_kg(self):
        return round(sum(line.estimated_effective_kg() for line in self.items.all()), 3)

    def __str__(self):
        return f"Order #{self.id} ({self.delivery_date} {self.shift_name})"

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['logistics_center', 'delivery_date', 'shift_name'], name='order_shift_idx'),
            models.Index(fields=['status'], name='order_status_idx'),
        ]


class OrderItem(models.Model):
    """One line of an order, by weight, by count or both"""
    UNIT_MODE_CHOICES = [
        ('kg', 'Kg'),
        ('unit', 'Unit'),
        ('mixed', 'Mixed'),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    item = models.ForeignKey('catalog.Item', on_delete=models.PROTECT, related_name='order_items')
    name = models.CharField(max_length=200, blank=True)
    unit_mode = models.CharField(max_length=10, choices=UNIT_MODE_CHOICES, default='kg')
    quantity_kg = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])
    units = models.PositiveIntegerField(null=True, blank=True)
    avg_weight_per_unit_kg = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])
    price_per_kg = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    def clean(self):
        errors = line_errors(self.unit_mode, self.quantity_kg, self.units, self.avg_weight_per_unit_kg)
        if errors:
            raise ValidationError(errors)

    def estimated_effective_kg(self):
        """Ordered kg plus units times the unit weight, to 3 decimals"""
        kg = (self.quantity_kg or 0) + (self.units or 0) * (self.avg_weight_per_unit_kg or 0)
        return round(kg, 3)

    def line_subtotal(self):
        value = Decimal(str(self.estimated_effective_kg())) * self.price_per_kg
        return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    def packing_line(self):
        """Shape expected by the packing engine"""
        return {
            'item_id': str(self.item_id),
            'name': self.name,
            'quantity_kg': self.quantity_kg or 0,
            'units': self.units or 0,
            'avg_weight_per_unit_kg': self.avg_weight_per_unit_kg,
        }

    def __str__(self):
        return f"{self.name or self.item_id} ({self.unit_mode})"

    class Meta:
        db_table = 'order_items'

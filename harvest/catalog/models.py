from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


def calc_usable_liters(length_cm, width_cm, height_cm, headroom_pct):
    """Open-top volume in liters after leaving ``headroom_pct`` unfilled, to 0.1 L"""
    raw = length_cm * width_cm * height_cm * (1 - headroom_pct) / 1000
    return float(Decimal(str(raw)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


class Item(models.Model):
    """Sellable produce item"""
    CATEGORY_CHOICES = [
        ('fruit', 'Fruit'),
        ('vegetable', 'Vegetable'),
        ('herb', 'Herb'),
        ('leafy', 'Leafy greens'),
        ('citrus', 'Citrus'),
        ('dairy', 'Dairy'),
        ('bakery', 'Bakery'),
        ('other', 'Other'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='other')
    type = models.CharField(max_length=100, blank=True)
    variety = models.CharField(max_length=100, blank=True)
    avg_weight_per_unit_gr = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])
    price_per_kg = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.variety})" if self.variety else self.name

    class Meta:
        db_table = 'items'


class BoxDimensions(models.Model):
    """Inner dimensions (cm) and headroom shared by boxes and containers"""
    key = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    inner_length_cm = models.FloatField(validators=[MinValueValidator(1)])
    inner_width_cm = models.FloatField(validators=[MinValueValidator(1)])
    inner_height_cm = models.FloatField(validators=[MinValueValidator(1)])
    headroom_pct = models.FloatField(
        default=0.1, validators=[MinValueValidator(0), MaxValueValidator(0.9)],
        help_text="Fraction of the volume left unused (0.1 => filled to 90%)",
    )
    usable_liters = models.FloatField(default=0, editable=False)
    max_weight_kg = models.FloatField(validators=[MinValueValidator(0.001)])
    vented = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        self.usable_liters = calc_usable_liters(
            self.inner_length_cm, self.inner_width_cm, self.inner_height_cm, self.headroom_pct
        )
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.key})"

    class Meta:
        abstract = True


class PackageSize(BoxDimensions):
    """Customer-order box a picker fills"""
    max_skus_per_box = models.PositiveIntegerField(null=True, blank=True)
    mixing_allowed = models.BooleanField(default=True)

    class Meta:
        db_table = 'package_sizes'
        ordering = ['usable_liters']


class ContainerSize(BoxDimensions):
    """Open crate used for farmer deliveries"""
    tare_weight_kg = models.FloatField(default=0, validators=[MinValueValidator(0)])
    vented = models.BooleanField(default=True)

    class Meta:
        db_table = 'container_sizes'
        ordering = ['usable_liters']


class ItemPacking(models.Model):
    """Per-item packing rules that override the category defaults"""
    FRAGILITY_CHOICES = [
        ('very_fragile', 'Very fragile'),
        ('fragile', 'Fragile'),
        ('normal', 'Normal'),
        ('sturdy', 'Sturdy'),
    ]

    item = models.OneToOneField(Item, on_delete=models.CASCADE, related_name='packing')
    fragility = models.CharField(max_length=20, choices=FRAGILITY_CHOICES, default='normal')
    allow_mixing = models.BooleanField(default=True)
    requires_vented_box = models.BooleanField(default=False)
    min_box_type = models.CharField(max_length=50, blank=True, help_text="PackageSize key")
    max_weight_per_package_kg = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0.001)])
    density_kg_per_l = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0.001)])
    unit_vol_liters = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0.001)])
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def clean(self):
        if not self.min_box_type:
            return
        boxes = PackageSize.objects.filter(key=self.min_box_type)
        if not boxes.exists():
            raise ValidationError({'min_box_type': f'No PackageSize found with key "{self.min_box_type}".'})
        if self.requires_vented_box and not boxes.filter(vented=True).exists():
            raise ValidationError({
                'requires_vented_box': f'Item requires a vented "{self.min_box_type}" box, but none exists.'
            })

    def as_overrides(self):
        """Only the values that were actually set"""
        overrides = {
            'fragility': self.fragility,
            'allow_mixing': self.allow_mixing,
            'requires_vented_box': self.requires_vented_box,
        }
        for field in ('min_box_type', 'max_weight_per_package_kg', 'density_kg_per_l', 'unit_vol_liters'):
            value = getattr(self, field)
            if value not in (None, ''):
                overrides[field] = value
        return overrides

    def __str__(self):
        return f"Packing for {self.item}"

    class Meta:
        db_table = 'item_packings'

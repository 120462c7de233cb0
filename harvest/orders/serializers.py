from django.db import transaction
from rest_framework import serializers
from .models import Order, OrderItem, line_errors


class OrderItemSerializer(serializers.ModelSerializer):
    estimated_effective_kg = serializers.FloatField(read_only=True)
    line_subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    price_per_kg = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'item', 'name', 'unit_mode', 'quantity_kg', 'units', 'avg_weight_per_unit_kg',
            'price_per_kg', 'estimated_effective_kg', 'line_subtotal',
        ]

    def validate(self, attrs):
        item = attrs['item']
        if not item.is_active:
            raise serializers.ValidationError({'item': f'Item {item.id} is not available'})

        # Snapshot catalog values the client left out
        if not attrs.get('name'):
            attrs['name'] = item.name
        attrs.setdefault('price_per_kg', item.price_per_kg)
        if attrs.get('units') and not attrs.get('avg_weight_per_unit_kg') and item.avg_weight_per_unit_gr:
            attrs['avg_weight_per_unit_kg'] = item.avg_weight_per_unit_gr / 1000

        errors = line_errors(
            attrs.get('unit_mode', 'kg'),
            attrs.get('quantity_kg'),
            attrs.get('units'),
            attrs.get('avg_weight_per_unit_kg'),
        )
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True)
    customer_username = serializers.CharField(source='customer.username', read_only=True)
    items_subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    total_weight_kg = serializers.FloatField(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'customer', 'customer_username', 'logistics_center', 'shift_name', 'delivery_date',
            'delivery_address', 'status', 'notes', 'items', 'items_subtotal', 'total_weight_kg',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['customer', 'status', 'created_at', 'updated_at']

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('An order needs at least one item')
        return value

    def create(self, validated_data):
        items = validated_data.pop('items')
        with transaction.atomic():
            order = Order.objects.create(**validated_data)
            OrderItem.objects.bulk_create([OrderItem(order=order, **line) for line in items])
        return order


class OrderUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = ['status', 'delivery_address', 'notes']

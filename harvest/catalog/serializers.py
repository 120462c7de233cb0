from rest_framework import serializers
from .models import Item, PackageSize, ContainerSize, ItemPacking


class ItemPackingSerializer(serializers.ModelSerializer):
    class Meta:
        model = ItemPacking
        fields = [
            'fragility', 'allow_mixing', 'requires_vented_box', 'min_box_type',
            'max_weight_per_package_kg', 'density_kg_per_l', 'unit_vol_liters', 'notes',
        ]

    def validate(self, attrs):
        min_box_type = attrs.get('min_box_type')
        if min_box_type:
            boxes = PackageSize.objects.filter(key=min_box_type)
            if not boxes.exists():
                raise serializers.ValidationError({'min_box_type': f'No PackageSize found with key "{min_box_type}".'})
            if attrs.get('requires_vented_box') and not boxes.filter(vented=True).exists():
                raise serializers.ValidationError({
                    'requires_vented_box': f'Item requires a vented "{min_box_type}" box, but none exists.'
                })
        return attrs


class ItemSerializer(serializers.ModelSerializer):
    packing = ItemPackingSerializer(required=False, allow_null=True)

    class Meta:
        model = Item
        fields = [
            'id', 'name', 'category', 'type', 'variety', 'avg_weight_per_unit_gr',
            'price_per_kg', 'is_active', 'packing', 'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def create(self, validated_data):
        packing = validated_data.pop('packing', None)
        item = Item.objects.create(**validated_data)
        if packing:
            ItemPacking.objects.create(item=item, **packing)
        return item

    def update(self, instance, validated_data):
        packing = validated_data.pop('packing', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if packing:
            instance.packing, _ = ItemPacking.objects.update_or_create(item=instance, defaults=packing)
        return instance


class PackageSizeSerializer(serializers.ModelSerializer):
    class Meta:
        model = PackageSize
        fields = [
            'id', 'key', 'name', 'inner_length_cm', 'inner_width_cm', 'inner_height_cm',
            'headroom_pct', 'usable_liters', 'max_weight_kg', 'vented',
            'max_skus_per_box', 'mixing_allowed',
        ]
        read_only_fields = ['usable_liters']


class ContainerSizeSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContainerSize
        fields = [
            'id', 'key', 'name', 'inner_length_cm', 'inner_width_cm', 'inner_height_cm',
            'headroom_pct', 'usable_liters', 'max_weight_kg', 'tare_weight_kg', 'vented',
        ]
        read_only_fields = ['usable_liters']


class ContainerLineSerializer(serializers.Serializer):
    item_id = serializers.CharField()
    estimated_kg = serializers.FloatField(required=False, allow_null=True, min_value=0)
    committed_kg = serializers.FloatField(required=False, allow_null=True, min_value=0)


class ContainerEstimateSerializer(serializers.Serializer):
    lines = ContainerLineSerializer(many=True)

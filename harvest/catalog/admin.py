from django.contrib import admin
from .models import Item, PackageSize, ContainerSize, ItemPacking


class ItemPackingInline(admin.StackedInline):
    model = ItemPacking
    extra = 0


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'type', 'variety', 'price_per_kg', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'type', 'variety']
    inlines = [ItemPackingInline]


@admin.register(PackageSize)
class PackageSizeAdmin(admin.ModelAdmin):
    list_display = ['key', 'name', 'usable_liters', 'max_weight_kg', 'vented', 'mixing_allowed']
    list_filter = ['vented', 'mixing_allowed']
    readonly_fields = ['usable_liters']


@admin.register(ContainerSize)
class ContainerSizeAdmin(admin.ModelAdmin):
    list_display = ['key', 'name', 'usable_liters', 'max_weight_kg', 'tare_weight_kg', 'vented']
    readonly_fields = ['usable_liters']

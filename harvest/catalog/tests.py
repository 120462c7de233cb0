"""
Tests for the catalog and the packing engine
"""
from io import StringIO

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from harvest.core.exceptions import BadRequest
from harvest.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from . import packing, services
from .models import Item, ItemPacking, PackageSize, ContainerSize, calc_usable_liters

TOMATO = {'id': '1', 'name': 'Tomato', 'category': 'vegetable', 'type': 'Tomato', 'variety': '', 'avg_weight_per_unit_gr': 250}
CUCUMBER = {'id': '2', 'name': 'Cucumber', 'category': 'vegetable', 'type': 'Cucumber', 'variety': '', 'avg_weight_per_unit_gr': None}
APPLE = {'id': '3', 'name': 'Apple', 'category': 'fruit', 'type': 'Apple', 'variety': 'Pink Lady', 'avg_weight_per_unit_gr': 200}

BOXES = [
    {'key': 'Small', 'name': 'Small box', 'usable_liters': 8.1, 'max_weight_kg': 6, 'vented': False, 'max_skus_per_box': 6, 'mixing_allowed': True},
    {'key': 'Medium', 'name': 'Medium box', 'usable_liters': 21.6, 'max_weight_kg': 12, 'vented': False, 'max_skus_per_box': 6, 'mixing_allowed': True},
    {'key': 'Medium-Vented', 'name': 'Medium vented box', 'usable_liters': 21.6, 'max_weight_kg': 10, 'vented': True, 'max_skus_per_box': 6, 'mixing_allowed': True},
    {'key': 'Large', 'name': 'Large box', 'usable_liters': 64.8, 'max_weight_kg': 20, 'vented': False, 'max_skus_per_box': 6, 'mixing_allowed': True},
]

CONTAINERS = [
    {'key': 'small', 'name': 'Small crate', 'usable_liters': 20, 'max_weight_kg': 10},
    {'key': 'big', 'name': 'Big crate', 'usable_liters': 50, 'max_weight_kg': 20},
]


def kg_line(item, kg):
    return {'item_id': item['id'], 'name': item['name'], 'quantity_kg': kg}


class BucketTests(SimpleTestCase):
    """Tests for item classification"""

    def test_buckets(self):
        """Test type, variety and category keywords"""
        self.assertEqual(packing.bucket({'type': 'Cherry Tomato'}), 'tomatoes')
        self.assertEqual(packing.bucket({'category': 'leafy', 'type': 'Mix'}), 'leafy')
        self.assertEqual(packing.bucket({'type': 'Baby Spinach'}), 'leafy')
        self.assertEqual(packing.bucket({'type': 'Basil herb'}), 'herbs')
        self.assertEqual(packing.bucket({'type': 'Fruit', 'variety': 'Blackberry'}), 'berries')
        self.assertEqual(packing.bucket({'type': 'Potato'}), 'roots')
        self.assertEqual(packing.bucket({'type': 'Eggs'}), 'bundled')
        self.assertEqual(packing.bucket({'type': 'Lemon', 'category': 'citrus'}), 'citrus')
        self.assertEqual(packing.bucket({'type': 'Mango'}), 'generic')

    def test_overrides_win(self):
        """Test per-item density and unit volume"""
        self.assertEqual(packing.density_for(TOMATO), 0.6)
        self.assertEqual(packing.density_for(TOMATO, {'density_kg_per_l': 0.9}), 0.9)
        self.assertEqual(packing.unit_volume_for(APPLE), 0.12)
        self.assertEqual(packing.unit_volume_for(APPLE, {'unit_vol_liters': 0.3}), 0.3)

    def test_round_to_half_up(self):
        """Test rounding does not round half to even"""
        self.assertEqual(packing.round_to(2.675, 2), 2.68)
        self.assertEqual(packing.round_to(0.125, 2), 0.13)


class ContainerEstimateTests(SimpleTestCase):
    """Tests for container capacity estimates"""

    def test_capacity_limited_by_weight(self):
        """Test a dense item hits the weight limit first"""
        result = packing.estimate_container_capacity_for_item(TOMATO, CONTAINERS[1])
        self.assertEqual(result['max_kg_by_volume'], 30.0)
        self.assertEqual(result['limiting_kg'], 20.0)
        self.assertEqual(result['limiting_factor'], 'weight')
        self.assertEqual(result['approx_max_units'], 80)

    def test_capacity_limited_by_volume(self):
        """Test a light item fills the volume first"""
        leafy = {'id': '9', 'name': 'Lettuce', 'category': 'leafy', 'type': 'Lettuce'}
        result = packing.estimate_container_capacity_for_item(leafy, CONTAINERS[1])
        self.assertEqual(result['limiting_kg'], 7.5)
        self.assertEqual(result['limiting_factor'], 'volume')

    def test_estimate_for_lines(self):
        """Test container choice per line and committed kg winning"""
        lines = [
            {'item_id': '1', 'estimated_kg': 15},
            {'item_id': '2', 'estimated_kg': 5, 'committed_kg': 50},
            {'item_id': '999', 'estimated_kg': 3},
            {'item_id': '1', 'estimated_kg': 0},
        ]
        result = packing.estimate_containers_for_lines(lines, {'1': TOMATO, '2': CUCUMBER}, CONTAINERS)
        self.assertEqual(len(result['lines']), 2)
        self.assertEqual(result['lines'][0]['container_key'], 'big')
        self.assertEqual(result['lines'][0]['containers_needed'], 1)
        self.assertEqual(result['lines'][1]['total_kg'], 50)
        self.assertEqual(result['lines'][1]['containers_needed'], 3)
        self.assertEqual(result['total_containers'], 4)
        self.assertEqual(result['warnings'], ["Item 999 not found; skipping."])

    def test_smallest_container_that_fits(self):
        """Test a small quantity uses the small crate"""
        result = packing.estimate_containers_for_item_quantity(TOMATO, 8, CONTAINERS)
        self.assertEqual(result['container_key'], 'small')
        self.assertEqual(result['containers_needed'], 1)

    def test_no_containers(self):
        """Test missing container configuration"""
        result = packing.estimate_containers_for_lines([{'item_id': '1', 'estimated_kg': 5}], {'1': TOMATO}, [])
        self.assertEqual(result['warnings'], ["No container sizes configured."])
        self.assertIsNone(packing.estimate_containers_for_item_quantity(TOMATO, 5, []))
        self.assertIsNone(packing.estimate_containers_for_item_quantity(TOMATO, 0, CONTAINERS))


class PackingPlanTests(SimpleTestCase):
    """Tests for the order packing plan"""

    def test_single_small_bag(self):
        """Test a small line goes in the smallest box"""
        plan = packing.compute_packing_for_order([kg_line(TOMATO, 3)], {'1': TOMATO}, BOXES)
        self.assertEqual(plan['summary']['total_boxes'], 1)
        box = plan['boxes'][0]
        self.assertEqual(box['box_no'], 1)
        self.assertEqual(box['box_type'], 'Small')
        self.assertEqual(box['est_fill_liters'], 5.0)
        self.assertEqual(box['est_weight_kg'], 3.0)
        self.assertEqual(box['fill_pct'], 0.617)
        self.assertEqual(box['contents'][0]['piece_type'], 'bag')

    def test_line_split_into_bags(self):
        """Test a line above the bag limit is split and packed together"""
        plan = packing.compute_packing_for_order([kg_line(TOMATO, 12)], {'1': TOMATO}, BOXES)
        self.assertEqual(plan['summary']['total_boxes'], 1)
        self.assertEqual(plan['boxes'][0]['box_type'], 'Medium')
        self.assertEqual(plan['boxes'][0]['est_weight_kg'], 12.0)
        by_item = plan['summary']['by_item'][0]
        self.assertEqual(by_item['bags'], 3)
        self.assertEqual(by_item['total_kg'], 12.0)
        self.assertEqual([p['qty_kg'] for p in plan['boxes'][0]['contents']], [5.0, 5.0, 2.0])

    def test_max_weight_per_package_override(self):
        """Test a smaller bag limit"""
        plan = packing.compute_packing_for_order(
            [kg_line(TOMATO, 3)], {'1': TOMATO}, BOXES, {'1': {'max_weight_per_package_kg': 1}},
        )
        self.assertEqual(plan['summary']['by_item'][0]['bags'], 3)

    def test_requires_vented_box(self):
        """Test vented-only items"""
        plan = packing.compute_packing_for_order(
            [kg_line(TOMATO, 3)], {'1': TOMATO}, BOXES, {'1': {'requires_vented_box': True}},
        )
        self.assertEqual(plan['boxes'][0]['box_type'], 'Medium-Vented')
        self.assertTrue(plan['boxes'][0]['vented'])

    def test_min_box_type(self):
        """Test the minimum box type floor"""
        plan = packing.compute_packing_for_order(
            [kg_line(TOMATO, 1)], {'1': TOMATO}, BOXES, {'1': {'min_box_type': 'Large'}},
        )
        self.assertEqual(plan['boxes'][0]['box_type'], 'Large')

    def test_items_share_a_box(self):
        """Test mixable items are packed together"""
        lines = [kg_line(TOMATO, 3), kg_line(CUCUMBER, 1)]
        plan = packing.compute_packing_for_order(lines, {'1': TOMATO, '2': CUCUMBER}, BOXES)
        self.assertEqual(plan['summary']['total_boxes'], 1)
        self.assertEqual(len(plan['summary']['by_item']), 2)

    def test_very_fragile_item_packed_alone(self):
        """Test very fragile items never share a box"""
        lines = [kg_line(TOMATO, 3), kg_line(CUCUMBER, 1)]
        plan = packing.compute_packing_for_order(
            lines, {'1': TOMATO, '2': CUCUMBER}, BOXES, {'1': {'fragility': 'very_fragile'}},
        )
        self.assertEqual(plan['summary']['total_boxes'], 2)
        self.assertEqual({p['item_id'] for p in plan['boxes'][0]['contents']}, {'1'})

    def test_unit_line_bundles(self):
        """Test unit lines become bundles"""
        line = {'item_id': '3', 'name': 'Apple', 'units': 10, 'avg_weight_per_unit_kg': 0.2}
        plan = packing.compute_packing_for_order([line], {'3': APPLE}, BOXES)
        piece = plan['boxes'][0]['contents'][0]
        self.assertEqual(piece['piece_type'], 'bundle')
        self.assertEqual(piece['units'], 10)
        self.assertEqual(piece['est_weight_kg_piece'], 2.0)
        by_item = plan['summary']['by_item'][0]
        self.assertEqual(by_item['bundles'], 1)
        self.assertEqual(by_item['total_units'], 10)

    def test_oversized_piece_warning(self):
        """Test a piece bigger than every allowed box"""
        line = {'item_id': '3', 'units': 1}
        plan = packing.compute_packing_for_order([line], {'3': APPLE}, BOXES, {'3': {'unit_vol_liters': 100}})
        self.assertEqual(plan['boxes'][0]['box_type'], 'Large')
        self.assertEqual(
            plan['summary']['warnings'], ["Piece of item 3 exceeds the largest allowed box; packed alone."],
        )

    def test_zero_capacity_box_is_ignored(self):
        """Test a box rounding to zero liters is never chosen"""
        tiny = {
            'key': 'Tiny', 'name': 'Tiny box', 'usable_liters': calc_usable_liters(10, 10, 4, 0.9),
            'max_weight_kg': 1, 'vented': False, 'max_skus_per_box': 6, 'mixing_allowed': True,
        }
        self.assertEqual(tiny['usable_liters'], 0.0)

        plan = packing.compute_packing_for_order([kg_line(TOMATO, 1)], {'1': TOMATO}, [tiny])
        self.assertEqual(plan['boxes'], [])
        self.assertEqual(plan['summary']['warnings'], ["No feasible box for item 1."])

        plan = packing.compute_packing_for_order([kg_line(TOMATO, 1)], {'1': TOMATO}, [tiny] + BOXES)
        self.assertEqual(plan['boxes'][0]['box_type'], 'Small')

    def test_line_without_piece_size_is_skipped(self):
        """Test a line whose largest box holds nothing is skipped with a warning"""
        empty_box = dict(BOXES[0], usable_liters=0.0)
        warnings = []
        pieces = packing.split_line_into_pieces(kg_line(TOMATO, 1), TOMATO, {}, [empty_box], warnings)
        self.assertEqual(pieces, [])
        self.assertEqual(warnings, ["Item 1 cannot be split into pieces; skipping."])

        with self.assertRaises(ValueError):
            packing._split(1, 0)

    def test_missing_configuration_and_items(self):
        """Test warnings for missing boxes and unknown items"""
        plan = packing.compute_packing_for_order([kg_line(TOMATO, 1)], {'1': TOMATO}, [])
        self.assertEqual(plan['boxes'], [])
        self.assertEqual(plan['summary']['warnings'], ["No package sizes configured."])

        plan = packing.compute_packing_for_order([{'item_id': '42', 'quantity_kg': 1}], {}, BOXES)
        self.assertEqual(plan['summary']['total_boxes'], 0)
        self.assertEqual(plan['summary']['warnings'], ["Item 42 not found; skipping."])


class CatalogModelTests(TestCase):
    """Tests for catalog models and services"""

    def setUp(self):
        cache.clear()

    def test_usable_liters_computed_on_save(self):
        """Test usable liters are derived from dimensions"""
        self.assertEqual(calc_usable_liters(40, 30, 20, 0.1), 21.6)
        sizes = TestDataFactory.create_package_sizes()
        self.assertEqual(sizes[0].usable_liters, 8.1)
        self.assertEqual(sizes[2].usable_liters, 64.8)

    def test_item_packing_clean(self):
        """Test min_box_type must exist and be vented when required"""
        TestDataFactory.create_package_sizes()
        item = TestDataFactory.create_item()
        with self.assertRaises(ValidationError):
            ItemPacking(item=item, min_box_type='Huge').clean()
        with self.assertRaises(ValidationError):
            ItemPacking(item=item, min_box_type='Medium', requires_vented_box=True).clean()
        ItemPacking(item=item, min_box_type='Medium-Vented', requires_vented_box=True).clean()

    def test_as_overrides_skips_unset_values(self):
        """Test only set values become overrides"""
        item = TestDataFactory.create_item()
        overrides = TestDataFactory.create_item_packing(item, fragility='fragile', density_kg_per_l=0.4).as_overrides()
        self.assertEqual(overrides['density_kg_per_l'], 0.4)
        self.assertNotIn('min_box_type', overrides)
        self.assertNotIn('unit_vol_liters', overrides)

    def test_build_packing_plan_from_database(self):
        """Test plans built from stored sizes and packing rules"""
        TestDataFactory.create_package_sizes()
        item = TestDataFactory.create_item(type='Tomato')
        TestDataFactory.create_item_packing(item, min_box_type='Large')
        plan = services.build_packing_plan([{'item_id': item.id, 'name': item.name, 'quantity_kg': 2}])
        self.assertEqual(plan['boxes'][0]['box_type'], 'Large')

    def test_size_cache_invalidated(self):
        """Test new sizes show up after the cache was filled"""
        self.assertEqual(services.load_package_sizes(), [])
        TestDataFactory.create_package_sizes()
        self.assertEqual(len(services.load_package_sizes()), 4)

    def test_estimate_item_containers(self):
        """Test the single item estimate"""
        TestDataFactory.create_container_size(key='crate-std')
        item = TestDataFactory.create_item(type='Tomato')
        result = services.estimate_item_containers(item, 45)
        self.assertEqual(result['estimate']['container_key'], 'crate-std')
        self.assertEqual(result['estimate']['containers_needed'], 3)
        self.assertEqual(len(result['capacities']), 1)
        with self.assertRaises(BadRequest):
            services.estimate_item_containers(item, 0)


class CatalogAPITests(TestCase):
    """Tests for catalog endpoints"""

    def setUp(self):
        cache.clear()
        self.manager = TestDataFactory.create_user(role='fManager')
        self.customer = TestDataFactory.create_user(role='customer')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        TestDataFactory.create_package_sizes()

    def test_create_item_with_packing(self):
        """Test creating an item with nested packing rules"""
        data = {
            'name': 'Cherry Tomato',
            'category': 'vegetable',
            'type': 'Tomato',
            'price_per_kg': '14.50',
            'packing': {'fragility': 'fragile', 'min_box_type': 'Medium'},
        }
        response = self.client.post('/api/v1/items/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['packing']['min_box_type'], 'Medium')
        self.assertTrue(ItemPacking.objects.filter(item_id=response.data['id']).exists())

    def test_create_item_bad_box_type(self):
        """Test nested packing validation"""
        data = {'name': 'Basil', 'category': 'herb', 'packing': {'min_box_type': 'Huge'}}
        response = self.client.post('/api/v1/items/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Item.objects.filter(name='Basil').exists())

    def test_create_item_forbidden_for_customers(self):
        """Test customers cannot create items"""
        self.client.authenticate_user(self.customer)
        response = self.client.post('/api/v1/items/', {'name': 'Kale'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_items_filters(self):
        """Test search and active filters"""
        TestDataFactory.create_item(name='Roma', type='Tomato')
        TestDataFactory.create_item(name='Beit Alpha', type='Cucumber')
        Item.objects.create(name='Old Tomato', type='Tomato', is_active=False)

        self.client.authenticate_user(self.customer)
        response = self.client.get('/api/v1/items/?search=tomato&active=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([i['name'] for i in response.data], ['Roma'])

        response = self.client.get('/api/v1/items/?type=cucumber')
        self.assertEqual([i['name'] for i in response.data], ['Beit Alpha'])

    def test_update_item_packing(self):
        """Test patching packing rules onto an existing item"""
        item = TestDataFactory.create_item()
        response = self.client.patch(
            f'/api/v1/items/{item.id}/', {'packing': {'requires_vented_box': True}}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['packing']['requires_vented_box'])

    def test_package_sizes(self):
        """Test listing and creating package sizes"""
        response = self.client.get('/api/v1/package-sizes/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 4)

        data = {
            'key': 'XL', 'name': 'Extra large', 'inner_length_cm': 80, 'inner_width_cm': 50,
            'inner_height_cm': 30, 'max_weight_kg': 25,
        }
        response = self.client.post('/api/v1/package-sizes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['usable_liters'], 108.0)

    def test_container_sizes_forbidden_for_customers(self):
        """Test customers cannot add container sizes"""
        self.client.authenticate_user(self.customer)
        data = {'key': 'c', 'name': 'C', 'inner_length_cm': 10, 'inner_width_cm': 10, 'inner_height_cm': 10, 'max_weight_kg': 5}
        response = self.client.post('/api/v1/container-sizes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_item_container_estimate(self):
        """Test the per-item container estimate endpoint"""
        TestDataFactory.create_container_size(key='crate-std')
        item = TestDataFactory.create_item(type='Tomato')
        response = self.client.get(f'/api/v1/items/{item.id}/container-estimate/?quantity_kg=45')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['estimate']['containers_needed'], 3)

        response = self.client.get(f'/api/v1/items/{item.id}/container-estimate/?quantity_kg=lots')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/v1/items/{item.id}/container-estimate/?quantity_kg=0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_container_estimate_for_lines(self):
        """Test the multi-line container estimate endpoint"""
        TestDataFactory.create_container_size(key='crate-std')
        item = TestDataFactory.create_item(type='Tomato')
        data = {'lines': [{'item_id': str(item.id), 'estimated_kg': 30}, {'item_id': '999999', 'estimated_kg': 1}]}
        response = self.client.post('/api/v1/packing/containers/estimate/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_containers'], 2)
        self.assertEqual(response.data['warnings'], ["Item 999999 not found; skipping."])


class SeedPackageSizesCommandTests(TestCase):
    """Tests for the seed_package_sizes command"""

    def test_seed_is_idempotent(self):
        """Test seeding twice updates instead of duplicating"""
        out = StringIO()
        call_command('seed_package_sizes', stdout=out)
        self.assertEqual(PackageSize.objects.count(), 6)
        self.assertEqual(ContainerSize.objects.count(), 3)
        self.assertIn('Package sizes created: 6, updated: 0', out.getvalue())

        out = StringIO()
        call_command('seed_package_sizes', stdout=out)
        self.assertEqual(PackageSize.objects.count(), 6)
        self.assertIn('Package sizes created: 0, updated: 6', out.getvalue())

    def test_clear_removes_custom_sizes(self):
        """Test --clear drops sizes missing from the file"""
        TestDataFactory.create_container_size(key='custom')
        call_command('seed_package_sizes', '--clear', stdout=StringIO())
        self.assertFalse(ContainerSize.objects.filter(key='custom').exists())
        self.assertEqual(PackageSize.objects.get(key='Medium').usable_liters, 21.6)

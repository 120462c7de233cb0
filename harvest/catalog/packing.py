"""
Packing estimates.

Everything here is stateless and works on plain dicts so it can run on
cached rows, serializer data or model values alike:

* item:      {id, name, category, type, variety, avg_weight_per_unit_gr}
* box:       {key, name, usable_liters, max_weight_kg, vented,
              max_skus_per_box, mixing_allowed}
* container: {key, name, usable_liters, max_weight_kg, vented}
* overrides: ItemPacking.as_overrides() keyed by item id
"""
import math
from decimal import Decimal, ROUND_HALF_UP

# kg per liter by bucket
DENSITY = {
    'leafy': 0.15,
    'herbs': 0.15,
    'berries': 0.35,
    'tomatoes': 0.6,
    'cucumbers': 0.6,
    'peppers': 0.6,
    'apples': 0.65,
    'citrus': 0.7,
    'roots': 0.8,
    'bundled': 0.5,
    'generic': 0.5,
}

# liters per unit when the unit weight is unknown
UNIT_VOL_FALLBACK = {
    'berries': 0.06,
    'apples': 0.12,
    'citrus': 0.12,
    'tomatoes': 0.1,
    'cucumbers': 0.1,
    'peppers': 0.1,
    'generic': 0.1,
}

DEFAULT_MAX_KG_PER_BAG = 5.0
DEFAULT_UNITS_PER_BUNDLE = 12

LEAFY_TYPES = ('lettuce', 'spinach', 'kale', 'chard', 'arugula')
ROOT_WORDS = ('carrot', 'potato', 'beet', 'root')
BUNDLED_TYPES = ('egg', 'bread', 'milk')


def round_to(value, places=2):
    """Half-up rounding (``round`` would round half to even)"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def bucket(item):
    """Classify an item by its type/variety/category text"""
    t = (item.get('type') or '').lower()
    v = (item.get('variety') or '').lower()
    c = (item.get('category') or '').lower()

    if 'leaf' in c or any(x in t for x in LEAFY_TYPES):
        return 'leafy'
    if 'herb' in t:
        return 'herbs'
    if 'strawberry' in t or 'blueberry' in t or 'berry' in v:
        return 'berries'
    if 'tomato' in t:
        return 'tomatoes'
    if 'cucumber' in t:
        return 'cucumbers'
    if 'pepper' in t:
        return 'peppers'
    if 'apple' in t:
        return 'apples'
    if 'orange' in t or 'mandarin' in t or 'citrus' in c:
        return 'citrus'
    if any(x in t or x in c for x in ROOT_WORDS):
        return 'roots'
    if any(x in t for x in BUNDLED_TYPES):
        return 'bundled'
    return 'generic'


def density_for(item, overrides=None):
    overrides = overrides or {}
    return overrides.get('density_kg_per_l') or DENSITY.get(bucket(item), DENSITY['generic'])


def unit_volume_for(item, overrides=None):
    overrides = overrides or {}
    return overrides.get('unit_vol_liters') or UNIT_VOL_FALLBACK.get(bucket(item), UNIT_VOL_FALLBACK['generic'])


# Container capacity

def estimate_container_capacity_for_item(item, container, overrides=None):
    """How much of ``item`` one container holds, by volume and by weight limit"""
    density = density_for(item, overrides)
    usable_liters = container['usable_liters']
    max_kg_by_volume = round_to(usable_liters * density)
    max_kg_by_weight = container['max_weight_kg']
    limiting_kg = round_to(min(max_kg_by_volume, max_kg_by_weight))

    approx_max_units = None
    unit_gr = item.get('avg_weight_per_unit_gr')
    if unit_gr and unit_gr > 0:
        approx_max_units = math.floor(limiting_kg / (unit_gr / 1000))
    else:
        liters_per_unit = unit_volume_for(item, overrides)
        if liters_per_unit > 0:
            approx_max_units = math.floor(usable_liters / liters_per_unit)

    return {
        'container_key': container['key'],
        'container_name': container.get('name'),
        'usable_liters': usable_liters,
        'density_kg_per_l': density,
        'max_kg_by_volume': max_kg_by_volume,
        'max_kg_by_weight_limit': max_kg_by_weight,
        'limiting_kg': limiting_kg,
        'limiting_factor': 'weight' if max_kg_by_weight < max_kg_by_volume else 'volume',
        'approx_max_units': approx_max_units,
    }


def estimate_container_capacities_for_item(item, containers, overrides=None):
    return [estimate_container_capacity_for_item(item, c, overrides) for c in containers]


def pick_best_container(capacities, total_kg):
    """Smallest container holding everything at once, else the largest one"""
    viable = sorted((c for c in capacities if c['limiting_kg'] > 0), key=lambda c: c['limiting_kg'])
    if not viable:
        return None
    for capacity in viable:
        if capacity['limiting_kg'] >= total_kg:
            return capacity
    return viable[-1]


def estimate_containers_for_lines(lines, items_by_id, containers, overrides_by_id=None):
    """
    Containers needed per line of ``{item_id, estimated_kg, committed_kg}``.
    Committed kg wins over the estimate.
    """
    overrides_by_id = overrides_by_id or {}
    if not containers:
        return {'lines': [], 'total_containers': 0, 'warnings': ["No container sizes configured."]}

    warnings = []
    out_lines = []
    for line in lines or []:
        item_id = str(line.get('item_id'))
        item = items_by_id.get(item_id)
        if item is None:
            warnings.append(f"Item {item_id} not found; skipping.")
            continue

        committed = line.get('committed_kg')
        total_kg = (committed if committed is not None else line.get('estimated_kg')) or 0
        if total_kg <= 0:
            continue

        capacities = estimate_container_capacities_for_item(item, containers, overrides_by_id.get(item_id))
        best = pick_best_container(capacities, total_kg)
        if best is None:
            warnings.append(f"No feasible container for item {item_id}.")
            continue

        out_lines.append({
            'item_id': item_id,
            'item_name': item.get('name'),
            'total_kg': round_to(total_kg),
            'container_key': best['container_key'],
            'container_name': best['container_name'],
            'capacity_kg_per_container': best['limiting_kg'],
            'containers_needed': math.ceil(total_kg / best['limiting_kg']),
            'limiting_factor': best['limiting_factor'],
        })

    return {
        'lines': out_lines,
        'total_containers': sum(line['containers_needed'] for line in out_lines),
        'warnings': warnings,
    }


def estimate_containers_for_item_quantity(item, quantity_kg, containers, overrides=None):
    """Single item and quantity; None when nothing sensible can be said"""
    total_kg = quantity_kg or 0
    if total_kg <= 0 or not containers:
        return None

    best = pick_best_container(estimate_container_capacities_for_item(item, containers, overrides), total_kg)
    if best is None:
        return None

    return {
        'item_id': str(item.get('id')),
        'item_name': item.get('name'),
        'quantity_kg': round_to(total_kg),
        'container_key': best['container_key'],
        'container_name': best['container_name'],
        'containers_needed': math.ceil(total_kg / best['limiting_kg']),
        'capacity_kg_per_container': best['limiting_kg'],
        'limiting_factor': best['limiting_factor'],
        'approx_max_units': best['approx_max_units'],
    }


# Order packing plan

def allowed_boxes_for(package_sizes, overrides):
    """Box types an item may go in, smallest first"""
    boxes = sorted(
        (b for b in package_sizes if b['usable_liters'] > 0 and b['max_weight_kg'] > 0),
        key=lambda b: b['usable_liters'],
    )
    if overrides.get('requires_vented_box'):
        boxes = [b for b in boxes if b.get('vented')]
    min_key = overrides.get('min_box_type')
    if min_key:
        floor = next((b['usable_liters'] for b in package_sizes if b['key'] == min_key), None)
        if floor is not None:
            boxes = [b for b in boxes if b['usable_liters'] >= floor]
    return boxes


def _split(total, size):
    """[size, size, ..., remainder]"""
    if size <= 0:
        raise ValueError(f"Piece size must be positive, got {size}")
    parts = []
    remaining = total
    while remaining > 1e-9:
        part = min(size, remaining)
        parts.append(part)
        remaining -= part
    return parts


def split_line_into_pieces(line, item, overrides, allowed, warnings=None):
    """
    Bags (kg lines) and bundles (unit lines), each small enough for the
    largest allowed box. A line that cannot form a piece is skipped with a
    warning.
    """
    largest = allowed[-1]
    density = density_for(item, overrides)
    max_piece_kg = min(
        overrides.get('max_weight_per_package_kg') or DEFAULT_MAX_KG_PER_BAG,
        largest['max_weight_kg'],
        largest['usable_liters'] * density,
    )
    if max_piece_kg <= 0:
        if warnings is not None:
            warnings.append(f"Item {line['item_id']} cannot be split into pieces; skipping.")
        return []
    base = {
        'item_id': str(line['item_id']),
        'item_name': line.get('name') or item.get('name'),
    }
    pieces = []

    qty_kg = float(line.get('quantity_kg') or 0)
    if qty_kg > 0:
        for kg in _split(qty_kg, max_piece_kg):
            pieces.append({
                **base,
                'piece_type': 'bag',
                'mode': 'kg',
                'qty_kg': round_to(kg, 3),
                'units': None,
                'liters': round_to(kg / density, 3),
                'est_weight_kg_piece': round_to(kg, 3),
            })

    units = int(line.get('units') or 0)
    if units > 0:
        unit_kg = float(line.get('avg_weight_per_unit_kg') or 0)
        if unit_kg <= 0 and item.get('avg_weight_per_unit_gr'):
            unit_kg = item['avg_weight_per_unit_gr'] / 1000
        unit_liters = (unit_kg / density) if unit_kg > 0 else unit_volume_for(item, overrides)
        if overrides.get('unit_vol_liters'):
            unit_liters = overrides['unit_vol_liters']

        per_bundle = DEFAULT_UNITS_PER_BUNDLE
        if unit_kg > 0:
            per_bundle = math.floor(max_piece_kg / unit_kg)
        per_bundle = max(1, min(per_bundle, math.floor(largest['usable_liters'] / unit_liters)))

        for count in _split(units, per_bundle):
            count = int(count)
            pieces.append({
                **base,
                'piece_type': 'bundle',
                'mode': 'unit',
                'qty_kg': None,
                'units': count,
                'liters': round_to(count * unit_liters, 3),
                'est_weight_kg_piece': round_to(count * unit_kg, 3),
            })
    return pieces


class _OpenBox:
    def __init__(self, box_type):
        self.box_type = box_type
        self.contents = []
        self.liters = 0.0
        self.weight = 0.0
        self.item_ids = set()
        self.no_mixing = False

    def fits(self, piece, mixable):
        if self.liters + piece['liters'] > self.box_type['usable_liters'] + 1e-9:
            return False
        if self.weight + piece['est_weight_kg_piece'] > self.box_type['max_weight_kg'] + 1e-9:
            return False
        if piece['item_id'] in self.item_ids:
            return True
        if self.item_ids and (self.no_mixing or not mixable or not self.box_type.get('mixing_allowed', True)):
            return False
        max_skus = self.box_type.get('max_skus_per_box')
        return not max_skus or len(self.item_ids) + 1 <= max_skus

    def add(self, piece, mixable):
        self.contents.append(piece)
        self.liters += piece['liters']
        self.weight += piece['est_weight_kg_piece']
        self.item_ids.add(piece['item_id'])
        self.no_mixing = self.no_mixing or not mixable


def compute_packing_for_order(lines, items_by_id, package_sizes, overrides_by_id=None):
    """
    Split order lines into pieces and pack them first-fit-decreasing (by
    liters) into the smallest allowed box type that fits.

    ``lines`` are ``{item_id, name, quantity_kg, units, avg_weight_per_unit_kg}``.
    """
    overrides_by_id = overrides_by_id or {}
    warnings = []
    empty = {
        'boxes': [],
        'summary': {'total_boxes': 0, 'by_item': [], 'warnings': warnings, 'total_kg': 0, 'total_liters': 0},
    }
    if not package_sizes:
        warnings.append("No package sizes configured.")
        return empty

    pieces = []
    by_item = {}
    for line in lines or []:
        item_id = str(line.get('item_id'))
        item = items_by_id.get(item_id)
        if item is None:
            warnings.append(f"Item {item_id} not found; skipping.")
            continue

        overrides = overrides_by_id.get(item_id) or {}
        allowed = allowed_boxes_for(package_sizes, overrides)
        if not allowed:
            warnings.append(f"No feasible box for item {item_id}.")
            continue

        mixable = overrides.get('allow_mixing', True) and overrides.get('fragility') != 'very_fragile'
        allowed_keys = {b['key'] for b in allowed}
        for piece in split_line_into_pieces(line, item, overrides, allowed, warnings):
            pieces.append((piece, allowed, allowed_keys, mixable))

            entry = by_item.setdefault(item_id, {
                'item_id': item_id,
                'item_name': piece['item_name'],
                'bags': 0,
                'bundles': 0,
                'total_kg': 0.0,
                'total_units': 0,
            })
            if piece['piece_type'] == 'bag':
                entry['bags'] += 1
                entry['total_kg'] += piece['qty_kg']
            else:
                entry['bundles'] += 1
                entry['total_units'] += piece['units']

    pieces.sort(key=lambda p: p[0]['liters'], reverse=True)

    open_boxes = []
    for piece, allowed, allowed_keys, mixable in pieces:
        target = next(
            (box for box in open_boxes if box.box_type['key'] in allowed_keys and box.fits(piece, mixable)),
            None,
        )
        if target is None:
            box_type = next(
                (b for b in allowed
                 if piece['liters'] <= b['usable_liters'] and piece['est_weight_kg_piece'] <= b['max_weight_kg']),
                None,
            )
            if box_type is None:
                box_type = allowed[-1]
                warnings.append(f"Piece of item {piece['item_id']} exceeds the largest allowed box; packed alone.")
            target = _OpenBox(box_type)
            open_boxes.append(target)
        target.add(piece, mixable)

    boxes = []
    for box_no, box in enumerate(open_boxes, start=1):
        usable = box.box_type['usable_liters']
        boxes.append({
            'box_no': box_no,
            'box_type': box.box_type['key'],
            'vented': bool(box.box_type.get('vented')),
            'est_fill_liters': round_to(box.liters, 3),
            'est_weight_kg': round_to(box.weight, 3),
            'fill_pct': round_to(box.liters / usable, 3) if usable else 0,
            'contents': box.contents,
        })

    for entry in by_item.values():
        entry['total_kg'] = round_to(entry['total_kg'], 3)

    return {
        'boxes': boxes,
        'summary': {
            'total_boxes': len(boxes),
            'by_item': list(by_item.values()),
            'warnings': warnings,
            'total_kg': round_to(sum(b['est_weight_kg'] for b in boxes), 3),
            'total_liters': round_to(sum(b['est_fill_liters'] for b in boxes), 3),
        },
    }

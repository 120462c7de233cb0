"""
Management command to load package (box) and container sizes from a JSON file
"""
import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from harvest.catalog.models import PackageSize, ContainerSize

DEFAULT_FILE = Path(__file__).resolve().parent.parent.parent / 'data' / 'package_sizes.json'

DIMENSION_KEYS = ['inner_length_cm', 'inner_width_cm', 'inner_height_cm', 'max_weight_kg']
PACKAGE_KEYS = DIMENSION_KEYS + ['name', 'headroom_pct', 'vented', 'max_skus_per_box', 'mixing_allowed']
CONTAINER_KEYS = DIMENSION_KEYS + ['name', 'headroom_pct', 'vented', 'tare_weight_kg']


def check_row(row):
    if not isinstance(row, dict) or not row.get('key'):
        raise ValueError("row must be an object with a key")
    for key in DIMENSION_KEYS:
        value = row.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError(f"invalid number for {key}")
    headroom = row.get('headroom_pct', 0.1)
    if not 0 <= headroom <= 0.9:
        raise ValueError("headroom_pct must be between 0 and 0.9")


class Command(BaseCommand):
    help = "Seeds PackageSize and ContainerSize rows from a JSON file"

    def add_arguments(self, parser):
        parser.add_argument('--file', default=str(DEFAULT_FILE), help='Path to the sizes JSON file')
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete existing sizes before seeding',
        )

    def load_data(self, path):
        path = Path(path)
        if not path.exists():
            raise CommandError(f"Missing sizes file at: {path}")
        data = json.loads(path.read_text(encoding='utf-8'))
        if not isinstance(data, dict):
            raise CommandError("sizes file must be a JSON object")
        for section in ('package_sizes', 'container_sizes'):
            for idx, row in enumerate(data.get(section, [])):
                try:
                    check_row(row)
                except ValueError as e:
                    raise CommandError(f"{section}[{idx}] invalid: {e}")
        return data

    def seed(self, model, rows, keys, label):
        created_count = 0
        updated_count = 0
        for row in rows:
            defaults = {key: row[key] for key in keys if key in row}
            obj, created = model.objects.update_or_create(key=row['key'], defaults=defaults)
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f"  ✓ Created {label}: {obj.key} ({obj.usable_liters} L)"))
            else:
                updated_count += 1
                self.stdout.write(self.style.SUCCESS(f"  ✓ Updated {label}: {obj.key} ({obj.usable_liters} L)"))
        return created_count, updated_count

    def handle(self, *args, **options):
        data = self.load_data(options['file'])

        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(self.style.SUCCESS("SEEDING PACKAGE AND CONTAINER SIZES"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))

        with transaction.atomic():
            if options['clear']:
                deleted_packages, _ = PackageSize.objects.all().delete()
                deleted_containers, _ = ContainerSize.objects.all().delete()
                self.stdout.write(self.style.WARNING(
                    f"  Cleared {deleted_packages} package sizes and {deleted_containers} container sizes"
                ))
            package_counts = self.seed(PackageSize, data.get('package_sizes', []), PACKAGE_KEYS, 'package size')
            container_counts = self.seed(ContainerSize, data.get('container_sizes', []), CONTAINER_KEYS, 'container size')

        self.stdout.write(self.style.SUCCESS("\n================================================================================"))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(f"Package sizes created: {package_counts[0]}, updated: {package_counts[1]}")
        self.stdout.write(f"Container sizes created: {container_counts[0]}, updated: {container_counts[1]}")
        self.stdout.write(f"Total package sizes in database: {PackageSize.objects.count()}")
        self.stdout.write(f"Total container sizes in database: {ContainerSize.objects.count()}")
        self.stdout.write(self.style.SUCCESS("================================================================================"))

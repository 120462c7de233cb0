"""
Management command to load shift configuration rows from a JSON file
"""
import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from harvest.centers.models import LogisticsCenter, ShiftConfig

DEFAULT_FILE = Path(__file__).resolve().parent.parent.parent / 'data' / 'shifts.json'

SHIFT_NAMES = {choice[0] for choice in ShiftConfig.SHIFT_NAME_CHOICES}
MINUTE_KEYS = [
    'general_start_min', 'general_end_min',
    'industrial_deliverer_start_min', 'industrial_deliverer_end_min',
    'deliverer_start_min', 'deliverer_end_min',
    'delivery_slot_start_min', 'delivery_slot_end_min',
    'slot_size_min',
]


def check_row(row):
    if not isinstance(row, dict):
        raise ValueError("row must be an object")
    if row.get('name') not in SHIFT_NAMES:
        raise ValueError(f"invalid name: {row.get('name')}")
    if not isinstance(row.get('timezone'), str):
        raise ValueError("missing timezone")
    for key in MINUTE_KEYS:
        value = row.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"invalid number for {key}")


class Command(BaseCommand):
    help = "Seeds ShiftConfig rows from a JSON file (replace or merge mode)"

    def add_arguments(self, parser):
        parser.add_argument('--file', default=str(DEFAULT_FILE), help='Path to the shifts JSON array')
        parser.add_argument(
            '--center',
            help='Apply every row to this center code instead of each row\'s center_code',
        )
        parser.add_argument(
            '--merge',
            action='store_true',
            help='Upsert rows instead of clearing the affected centers first',
        )

    def load_rows(self, path):
        path = Path(path)
        if not path.exists():
            raise CommandError(f"Missing shifts file at: {path}")
        rows = json.loads(path.read_text(encoding='utf-8'))
        if not isinstance(rows, list):
            raise CommandError("shifts file must be a JSON array")
        for idx, row in enumerate(rows):
            try:
                check_row(row)
            except ValueError as e:
                raise CommandError(f"row {idx} invalid: {e}")
        return rows

    def handle(self, *args, **options):
        rows = self.load_rows(options['file'])
        merge = options['merge']

        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(self.style.SUCCESS(f"SEEDING SHIFT CONFIG ({len(rows)} rows, mode: {'merge' if merge else 'replace'})"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))

        created_count = 0
        updated_count = 0
        skipped_count = 0
        cleared = set()

        with transaction.atomic():
            for row in rows:
                code = options['center'] or row.get('center_code')
                center = LogisticsCenter.objects.filter(code=code).first()
                if center is None:
                    skipped_count += 1
                    self.stdout.write(self.style.WARNING(f"  ⊘ Skipped (unknown center): {code}/{row['name']}"))
                    continue

                if not merge and center.id not in cleared:
                    deleted, _ = ShiftConfig.objects.filter(logistics_center=center).delete()
                    cleared.add(center.id)
                    self.stdout.write(self.style.WARNING(f"  Cleared {deleted} existing rows for {center.code}"))

                defaults = {key: row[key] for key in MINUTE_KEYS}
                defaults['timezone'] = row['timezone']
                _, created = ShiftConfig.objects.update_or_create(
                    logistics_center=center, name=row['name'], defaults=defaults,
                )
                if created:
                    created_count += 1
                    self.stdout.write(self.style.SUCCESS(f"  ✓ Created: {center.code}/{row['name']}"))
                else:
                    updated_count += 1
                    self.stdout.write(self.style.SUCCESS(f"  ✓ Updated: {center.code}/{row['name']}"))

        self.stdout.write(self.style.SUCCESS("\n================================================================================"))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(f"Shift configs created: {created_count}")
        self.stdout.write(f"Shift configs updated: {updated_count}")
        self.stdout.write(f"Rows skipped: {skipped_count}")
        self.stdout.write(f"Total shift configs in database: {ShiftConfig.objects.count()}")
        self.stdout.write(self.style.SUCCESS("================================================================================"))

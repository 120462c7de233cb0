#!/usr/bin/env python
"""
Test runner script for the harvest apps
Usage: python Doc/run_tests.py [app ...]
"""
import os
import sys
from pathlib import Path

import django
from django.conf import settings
from django.test.utils import get_runner

APPS = [
    'harvest.core',
    'harvest.centers',
    'harvest.scheduling',
    'harvest.catalog',
    'harvest.orders',
    'harvest.picking',
]

if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'harvest.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    labels = [f'harvest.{name}' if not name.startswith('harvest.') else name for name in sys.argv[1:]]
    failures = test_runner.run_tests(labels or APPS)
    sys.exit(bool(failures))

"""
WSGI config for the harvest logistics backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'harvest.config.settings')

application = get_wsgi_application()

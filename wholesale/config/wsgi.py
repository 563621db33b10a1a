"""
WSGI config for the wholesale back office.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'wholesale.config.settings')

application = get_wsgi_application()

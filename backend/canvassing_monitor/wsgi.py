"""WSGI config for the Canvassing Monitor backend."""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'canvassing_monitor.settings')
application = get_wsgi_application()

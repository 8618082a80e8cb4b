"""
WSGI entry point, kept for gunicorn-style deployments and the Django
development server. Production runs through config.asgi.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()

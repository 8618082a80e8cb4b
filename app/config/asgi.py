"""
ASGI entry point, served by Uvicorn.

The API is plain HTTP; there are no WebSocket routes.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()

"""
ASGI entry point, served by Uvicorn in deployment.

Only plain HTTP is routed; the ledger has no websocket surface.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()

"""
asgi.py -- ASGI entry point for the forum.

Run with:  uvicorn asgi:app --reload

All routers are registered in api/main.py. This module exists so the
server command stays stable if the app grows a second layer to mount.
"""

from api.main import app

__all__ = ["app"]

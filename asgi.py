"""
asgi.py -- ASGI entry point for RxAuth.

Run with:  uvicorn asgi:app --reload

Kept separate from api/main.py so deployment tooling has one stable import
path even if further routers are mounted here later.
"""

from api.main import app

__all__ = ["app"]

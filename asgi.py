"""
asgi.py -- ASGI entry point for UserVault.

Kept separate from api/main.py so process managers have a stable import
path that does not move if the API package is reorganised.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]

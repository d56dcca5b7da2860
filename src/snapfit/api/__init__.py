"""
HTTP layer for the snapfit service.

- create_app: FastAPI application factory
- router: upload, list, fetch-one, patch, analyze and health routes
"""

from .app import create_app
from .routes import router

__all__ = ["create_app", "router"]

# File: app/api/endpoints/__init__.py
"""
API endpoints package for ShopDesk.

This package contains the endpoint modules for authentication and the
purchase order workflow.
"""

from app.api.endpoints import auth, purchases

__all__ = ["auth", "purchases"]

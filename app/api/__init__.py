# File: app/api/__init__.py
"""
API package for ShopDesk.

This package contains the API layer for the ShopDesk application,
including endpoints, dependencies, and routing configuration.
"""

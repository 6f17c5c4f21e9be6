# File: app/db/__init__.py
"""
Database package for ShopDesk.

Holds the ORM models, engine and session setup, and the initialization
entry point.
"""

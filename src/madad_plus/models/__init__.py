# src/madad_plus/models/__init__.py
"""SQLAlchemy models for the Madad+ application."""

from .local_storage import LocalStorageItem

__all__ = ["LocalStorageItem"]

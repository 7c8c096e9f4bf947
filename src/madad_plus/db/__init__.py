# src/madad_plus/db/__init__.py
"""Database configuration and utilities."""

from .session import SessionLocal, create_tables, drop_tables, get_db

__all__ = ["SessionLocal", "create_tables", "drop_tables", "get_db"]

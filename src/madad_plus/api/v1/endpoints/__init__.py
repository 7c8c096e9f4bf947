# src/madad_plus/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .connectivity import router as connectivity_router
from .reports import router as reports_router
from .system import router as system_router

__all__ = [
    "connectivity_router",
    "reports_router",
    "system_router",
]

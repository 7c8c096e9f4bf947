# src/madad_plus/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    connectivity_router,
    reports_router,
    system_router,
)

__all__ = [
    "connectivity_router",
    "reports_router",
    "system_router",
]

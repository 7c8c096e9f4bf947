# src/madad_plus/schemas/__init__.py
"""Pydantic schemas for the Madad+ API."""

from .connectivity import ConnectivityStatus, ConnectivityUpdate
from .report import (
    PendingReport,
    QueueStatus,
    ReportLocation,
    ReportPayload,
    SubmitResult,
    SyncResult,
)

__all__ = [
    "ConnectivityStatus",
    "ConnectivityUpdate",
    "PendingReport",
    "QueueStatus",
    "ReportLocation",
    "ReportPayload",
    "SubmitResult",
    "SyncResult",
]

# src/madad_plus/schemas/report.py
"""Emergency report and offline queue schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReportLocation(BaseModel):
    """Where the emergency is happening, as far as the device knows."""

    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    address: str | None = Field(None, max_length=500)


class ReportPayload(BaseModel):
    """Schema for an emergency report submitted by the UI.

    ``type``, ``description`` and ``location`` form the required core;
    method-specific fields such as a voice transcript or media references
    travel in ``extras``.
    """

    type: str = Field(..., min_length=1, max_length=100, description="Emergency type")
    description: str = Field(..., min_length=1, max_length=5000)
    location: ReportLocation | None = Field(..., description="Location, or null if unknown")
    title: str | None = Field(None, max_length=200)
    priority: str = Field(default="high", max_length=20)
    is_anonymous: bool = Field(default=False, alias="isAnonymous")
    extras: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class PendingReport(BaseModel):
    """A report accepted locally but not yet confirmed by the remote store."""

    local_id: str = Field(..., min_length=1, alias="localId")
    payload: dict[str, Any]
    enqueued_at: datetime = Field(..., alias="enqueuedAt")
    attempts: int = Field(default=0, ge=0)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_storage(self) -> dict[str, Any]:
        """Return the JSON-ready record persisted in the queue document."""
        return self.model_dump(mode="json", by_alias=True)


class SubmitResult(BaseModel):
    """Outcome of a submission: stored remotely or durably queued."""

    success: bool = True
    remote_id: str | None = Field(None, alias="remoteId")
    local_id: str | None = Field(None, alias="localId")
    queued: bool = False

    model_config = ConfigDict(populate_by_name=True)


class SyncResult(BaseModel):
    """Aggregate counts for one sync pass."""

    synced: int = 0
    failed: int = 0


class QueueStatus(BaseModel):
    """Queue state for badges and diagnostics."""

    online: bool
    pending: int
    syncing: bool
    reports: list[PendingReport] = Field(default_factory=list)

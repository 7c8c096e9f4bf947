"""Connectivity schemas."""

from pydantic import BaseModel


class ConnectivityUpdate(BaseModel):
    """Online/offline transition reported by the UI."""

    online: bool


class ConnectivityStatus(BaseModel):
    """Current connectivity as seen by the service."""

    online: bool
    source: str

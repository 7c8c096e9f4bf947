"""Shared API dependencies for the report service components."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from madad_plus.services.connectivity import ManualConnectivityMonitor
from madad_plus.services.offline_queue import OfflineReportQueue
from madad_plus.services.report_store import ReportStoreClient


def _component(request: Request, name: str) -> object:
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return component


def get_offline_queue(request: Request) -> OfflineReportQueue:
    """Return the application's offline report queue."""
    return _component(request, "offline_queue")  # type: ignore[return-value]


def get_connectivity_monitor(request: Request) -> ManualConnectivityMonitor:
    """Return the application's connectivity monitor."""
    return _component(request, "connectivity_monitor")  # type: ignore[return-value]


def get_report_store_client(request: Request) -> ReportStoreClient:
    """Return the application's remote report store client."""
    return _component(request, "report_store")  # type: ignore[return-value]


OfflineQueueDep = Annotated[OfflineReportQueue, Depends(get_offline_queue)]
ConnectivityDep = Annotated[ManualConnectivityMonitor, Depends(get_connectivity_monitor)]
ReportStoreDep = Annotated[ReportStoreClient, Depends(get_report_store_client)]

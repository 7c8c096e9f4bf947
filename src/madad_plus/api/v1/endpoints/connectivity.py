"""Connectivity endpoints: the UI forwards its online/offline events here."""

from fastapi import APIRouter, HTTPException, status

from madad_plus.api.v1.dependencies import ConnectivityDep
from madad_plus.schemas.connectivity import ConnectivityStatus, ConnectivityUpdate

router = APIRouter(prefix="/connectivity", tags=["connectivity"])


@router.get("/", response_model=ConnectivityStatus)
async def get_connectivity(monitor: ConnectivityDep) -> ConnectivityStatus:
    return ConnectivityStatus(online=monitor.is_online(), source=monitor.source)


@router.put("/", response_model=ConnectivityStatus)
async def update_connectivity(
    update: ConnectivityUpdate, monitor: ConnectivityDep
) -> ConnectivityStatus:
    """Record an online/offline transition observed by the client.

    Going online triggers a sync pass of the offline queue.
    """
    if monitor.source != "manual":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Connectivity is determined by the network probe",
        )

    monitor.set_online(update.online)
    return ConnectivityStatus(online=monitor.is_online(), source=monitor.source)

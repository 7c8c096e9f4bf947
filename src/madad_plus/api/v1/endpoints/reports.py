"""Emergency report endpoints for the Madad+ API."""

from fastapi import APIRouter, HTTPException, Query, Response, status

from madad_plus.api.v1.dependencies import ConnectivityDep, OfflineQueueDep
from madad_plus.schemas.report import QueueStatus, ReportPayload, SubmitResult, SyncResult
from madad_plus.services.offline_queue import EnqueueError, OfflineQueueError

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
async def submit_report(
    report: ReportPayload,
    response: Response,
    queue: OfflineQueueDep,
    defer: bool = Query(False, description="Queue without attempting immediate delivery"),
) -> SubmitResult:
    """Submit an emergency report.

    Returns 201 when the report store acknowledged it, 202 when it was saved
    for delivery once the device is back online. A 503 means the report is
    held nowhere and the user must retry now.
    """
    payload = report.model_dump(mode="json", by_alias=True)
    try:
        result = await queue.submit(payload, defer=defer)
    except EnqueueError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report could not be sent or saved on this device. Please try again now.",
        ) from exc

    if result.queued:
        response.status_code = status.HTTP_202_ACCEPTED
    return result


@router.post("/sync", response_model=SyncResult)
async def sync_reports(queue: OfflineQueueDep) -> SyncResult:
    """Run a sync pass now; returns zero counts if one is already running."""
    try:
        return await queue.sync()
    except OfflineQueueError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get("/pending", response_model=QueueStatus)
async def get_pending_reports(
    queue: OfflineQueueDep,
    monitor: ConnectivityDep,
    include_reports: bool = Query(True, description="Include the oldest-first snapshot"),
) -> QueueStatus:
    """Return the pending count and, optionally, the queued reports."""
    try:
        reports = await queue.drained_snapshot() if include_reports else []
        pending = await queue.pending_count()
    except OfflineQueueError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc

    return QueueStatus(
        online=monitor.is_online(),
        pending=pending,
        syncing=queue.syncing,
        reports=reports,
    )

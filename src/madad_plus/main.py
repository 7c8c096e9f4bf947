# src/madad_plus/main.py
"""Main entry point for the Madad+ report service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from madad_plus.api.v1 import connectivity_router, reports_router, system_router
from madad_plus.core.settings import settings
from madad_plus.db.session import create_tables
from madad_plus.services.connectivity import ProbeConnectivityMonitor, build_connectivity_monitor
from madad_plus.services.offline_queue import OfflineReportQueue
from madad_plus.services.report_store import get_report_store
from madad_plus.services.sync_worker import ReportSyncWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Madad+ API",
    description="Emergency report submission with offline queueing",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(reports_router, prefix="/api/v1")
app.include_router(connectivity_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


def install_services(target: FastAPI) -> None:
    """Build the report store, connectivity monitor, queue and worker."""
    report_store = get_report_store()
    monitor = build_connectivity_monitor()
    queue = OfflineReportQueue(report_store, monitor)

    target.state.report_store = report_store
    target.state.connectivity_monitor = monitor
    target.state.offline_queue = queue
    target.state.sync_worker = ReportSyncWorker(queue, monitor)


@app.on_event("startup")
async def on_startup() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    create_tables()

    if getattr(app.state, "offline_queue", None) is None:
        install_services(app)

    monitor = app.state.connectivity_monitor
    if isinstance(monitor, ProbeConnectivityMonitor):
        await monitor.start()
    await app.state.offline_queue.start()
    await app.state.sync_worker.start()
    logger.info(
        "Madad+ started (report store %s, connectivity via %s)",
        "enabled" if app.state.report_store.enabled else "disabled",
        monitor.source,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: ReportSyncWorker | None = getattr(app.state, "sync_worker", None)
    if worker:
        await worker.stop()

    queue: OfflineReportQueue | None = getattr(app.state, "offline_queue", None)
    if queue:
        await queue.stop()

    monitor = getattr(app.state, "connectivity_monitor", None)
    if isinstance(monitor, ProbeConnectivityMonitor):
        await monitor.stop()

    report_store = getattr(app.state, "report_store", None)
    if report_store is not None:
        await report_store.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Madad+ API",
        "version": settings.app_version,
        "description": "Emergency report submission with offline queueing",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("madad_plus.main:app", host="0.0.0.0", port=8000, reload=settings.debug)

"""System and diagnostics endpoints for the Madad+ API."""

from __future__ import annotations

from fastapi import APIRouter

from madad_plus.api.v1.dependencies import ConnectivityDep, ReportStoreDep
from madad_plus.core.settings import settings

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config(
    monitor: ConnectivityDep, report_store: ReportStoreDep
) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets; suitable for diagnostics screens.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "offline_queue": {
            "storage_key": settings.offline_queue_storage_key,
            "sync_interval_seconds": settings.offline_queue_sync_interval_seconds,
            "sync_on_startup": settings.offline_queue_sync_on_startup,
        },
        "report_store": {
            "enabled": report_store.enabled,
            "base_url": report_store.config.base_url,
            "collection": report_store.config.collection,
            "timeout_seconds": report_store.config.timeout_seconds,
        },
        "connectivity": {
            "source": monitor.source,
            "probe_url": settings.connectivity_probe_url,
        },
    }


@router.get("/report-store/health")
async def get_report_store_health(report_store: ReportStoreDep) -> dict[str, object]:
    """Check that the report store answers and show the circuit state."""
    return await report_store.health_check()


@router.get("/report-store/metrics")
async def get_report_store_metrics(report_store: ReportStoreDep) -> dict[str, object]:
    """Delivery outcome counts and latency for the report store."""
    if not report_store.enabled:
        return {
            "enabled": False,
            "error": "Remote report store is disabled"
        }

    return {
        "enabled": True,
        "metrics": report_store.delivery_stats(),
        "circuit_breaker": report_store.circuit_status(),
    }

# src/madad_plus/services/__init__.py
"""Services behind the Madad+ report API."""

from .connectivity import ManualConnectivityMonitor, ProbeConnectivityMonitor
from .local_storage import LocalStorage, StorageError
from .offline_queue import EnqueueError, OfflineQueueError, OfflineReportQueue
from .report_store import ReportStoreClient, ReportStoreError
from .sync_worker import ReportSyncWorker

__all__ = [
    "EnqueueError",
    "LocalStorage",
    "ManualConnectivityMonitor",
    "OfflineQueueError",
    "OfflineReportQueue",
    "ProbeConnectivityMonitor",
    "ReportStoreClient",
    "ReportStoreError",
    "ReportSyncWorker",
    "StorageError",
]

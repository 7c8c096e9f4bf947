# tests/conftest.py
from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterator
from itertools import count
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REPORT_STORE_ENABLED", "false")
os.environ.setdefault("CONNECTIVITY_PROBE_URL", "")
os.environ.setdefault("OFFLINE_QUEUE_SYNC_INTERVAL_SECONDS", "0")

from madad_plus.db.session import Base
from madad_plus.main import app
from madad_plus.services.connectivity import ManualConnectivityMonitor
from madad_plus.services.local_storage import LocalStorage
from madad_plus.services.offline_queue import OfflineReportQueue
from madad_plus.services.report_store import (
    RemoteReceipt,
    ReportStoreClient,
    ReportStoreConfig,
)
from madad_plus.services.sync_worker import ReportSyncWorker

TEST_DB_URL = "sqlite://"
TEST_STORAGE_KEY = "madadgar-offline-queue"


@pytest.fixture(scope="session")
def engine() -> Iterator[Engine]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def local_storage(session_factory: sessionmaker[Session]) -> LocalStorage:
    return LocalStorage(session_factory)


@pytest.fixture()
def monitor() -> ManualConnectivityMonitor:
    """Connectivity monitor that starts online."""
    return ManualConnectivityMonitor(online=True)


@pytest.fixture()
def report_store() -> AsyncMock:
    """Report store double that acknowledges every report with a fresh id."""
    client = AsyncMock(spec=ReportStoreClient)
    client.enabled = True
    ids = count(1)

    async def _create(payload: Any, *, idempotency_key: str | None = None) -> RemoteReceipt:
        return RemoteReceipt(id=f"remote-{next(ids)}")

    client.create.side_effect = _create
    return client


@pytest.fixture()
def offline_queue(
    report_store: AsyncMock,
    monitor: ManualConnectivityMonitor,
    local_storage: LocalStorage,
) -> OfflineReportQueue:
    return OfflineReportQueue(
        report_store, monitor, local_storage, storage_key=TEST_STORAGE_KEY
    )


class FakeReportStoreServer:
    """In-process stand-in for the hosted report collection."""

    def __init__(self) -> None:
        self.status_code = 201
        self.requests: list[httpx.Request] = []
        self._ids = count(1)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        if self.status_code >= 300:
            return httpx.Response(self.status_code, json={"error": "unavailable"})
        return httpx.Response(self.status_code, json={"id": f"doc-{next(self._ids)}"})

    @property
    def created(self) -> list[dict[str, Any]]:
        return [
            json.loads(request.content) for request in self.requests if request.method == "POST"
        ]


@pytest.fixture()
def store_server() -> FakeReportStoreServer:
    return FakeReportStoreServer()


@pytest.fixture()
def store_client(store_server: FakeReportStoreServer) -> ReportStoreClient:
    """Real report store client talking to the in-process fake store."""
    return ReportStoreClient(
        ReportStoreConfig(
            enabled=True,
            base_url="https://store.test",
            collection="reports",
            device_id="test-device",
            shared_secret="test-secret",
            audience="madad-report-store",
            token_ttl_seconds=60,
            timeout_seconds=5.0,
        ),
        transport=httpx.MockTransport(store_server),
    )


@pytest.fixture()
def client(
    store_client: ReportStoreClient,
    local_storage: LocalStorage,
) -> Iterator[TestClient]:
    """Test client wired to a fake report store and the test database."""
    monitor = ManualConnectivityMonitor(online=True)
    queue = OfflineReportQueue(store_client, monitor, local_storage, storage_key=TEST_STORAGE_KEY)

    app.state.report_store = store_client
    app.state.connectivity_monitor = monitor
    app.state.offline_queue = queue
    app.state.sync_worker = ReportSyncWorker(queue, monitor, interval_seconds=0)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        for name in ("report_store", "connectivity_monitor", "offline_queue", "sync_worker"):
            delattr(app.state, name)


def _build_report(description: str, report_type: str = "Medical Emergency") -> dict[str, Any]:
    return {
        "type": report_type,
        "title": f"Emergency - {report_type}",
        "description": description,
        "priority": "high",
        "isAnonymous": False,
        "location": {"latitude": 24.8607, "longitude": 67.0011, "address": "Saddar, Karachi"},
    }


@pytest.fixture()
def make_report() -> Callable[..., dict[str, Any]]:
    """Build report payloads the way the report dialogs do."""
    return _build_report

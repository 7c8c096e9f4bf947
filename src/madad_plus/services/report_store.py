"""Remote report store client.

Delivers emergency reports to the hosted report collection over HTTP. Each
request carries the device id, an HS256 bearer token when a shared secret
is configured, and the report's ``Idempotency-Key`` so the store can drop a
redelivered report.

Every call lands in one of three outcomes:

- acknowledged: a 2xx response
- rejected: any other status below 500, the store refused this report
- unavailable: a 5xx response, a timeout or a network error

Only unavailability counts against the circuit. A report the store keeps
rejecting must not lock every other report out of delivery.

The offline queue depends only on the narrow ``ReportStore`` protocol:
``create`` either returns a receipt carrying the server-assigned id or raises.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import secrets
import time
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import httpx
from jose import jwt

from madad_plus.core.settings import settings
from madad_plus.db.time import utcnow

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_MULTIPLE_CHOICES = 300
HTTP_INTERNAL_SERVER_ERROR = 500

Outcome = Literal["acknowledged", "rejected", "unavailable"]


class ReportStoreError(RuntimeError):
    """Base exception raised when a report cannot be stored remotely."""


class ReportStoreDisabledError(ReportStoreError):
    """Raised when store operations are attempted while the store is disabled."""


def classify_status(status_code: int) -> Outcome:
    if status_code >= HTTP_INTERNAL_SERVER_ERROR:
        return "unavailable"
    if HTTP_OK <= status_code < HTTP_MULTIPLE_CHOICES:
        return "acknowledged"
    return "rejected"


@dataclass
class DeliveryStats:
    """Running totals of store calls, split by outcome."""

    outcomes: Counter[str] = field(default_factory=Counter)
    errors: Counter[str] = field(default_factory=Counter)
    calls_by_endpoint: Counter[str] = field(default_factory=Counter)
    total_seconds: float = 0.0
    fastest_seconds: float | None = None
    slowest_seconds: float = 0.0

    @property
    def request_count(self) -> int:
        return sum(self.outcomes.values())

    def record(
        self, endpoint: str, outcome: Outcome, elapsed: float, error_type: str | None = None
    ) -> None:
        self.outcomes[outcome] += 1
        self.calls_by_endpoint[endpoint] += 1
        self.total_seconds += elapsed
        self.slowest_seconds = max(self.slowest_seconds, elapsed)
        if self.fastest_seconds is None or elapsed < self.fastest_seconds:
            self.fastest_seconds = elapsed
        if error_type:
            self.errors[error_type] += 1

    def snapshot(self) -> dict[str, Any]:
        total = self.request_count
        acknowledged = self.outcomes["acknowledged"]
        return {
            "request_count": total,
            "success_count": acknowledged,
            "rejected_count": self.outcomes["rejected"],
            "unavailable_count": self.outcomes["unavailable"],
            "error_count": total - acknowledged,
            "success_rate": acknowledged / total * 100 if total else 0.0,
            "average_response_time": self.total_seconds / total if total else 0.0,
            "min_response_time": self.fastest_seconds or 0.0,
            "max_response_time": self.slowest_seconds,
            "error_counts_by_type": dict(self.errors),
            "endpoint_counts": dict(self.calls_by_endpoint),
        }


@dataclass
class StoreCircuit:
    """Stops calling an unavailable store, then lets a trial call through.

    The circuit opens after ``failure_threshold`` consecutive outages. Once
    ``reset_after_seconds`` have passed it is half open: the next call goes
    out, and its outcome either closes the circuit or reopens it.
    """

    failure_threshold: int = 5
    reset_after_seconds: float = 30.0
    consecutive_failures: int = 0
    opened_at: float | None = None
    last_failure_at: float | None = None

    @property
    def state(self) -> str:
        if self.opened_at is None:
            return "closed"
        if time.monotonic() - self.opened_at >= self.reset_after_seconds:
            return "half_open"
        return "open"

    def allows_request(self) -> bool:
        return self.state != "open"

    def record_available(self) -> None:
        self.consecutive_failures = 0
        self.opened_at = None

    def record_unavailable(self) -> None:
        now = time.monotonic()
        self.consecutive_failures += 1
        self.last_failure_at = now
        if self.opened_at is not None or self.consecutive_failures >= self.failure_threshold:
            if self.opened_at is None:
                logger.warning(
                    "Report store unavailable %d times in a row; pausing calls for %.0fs",
                    self.consecutive_failures,
                    self.reset_after_seconds,
                )
            self.opened_at = now

    def status(self) -> dict[str, Any]:
        state = self.state
        return {
            "state": state,
            "is_open": state == "open",
            "consecutive_failures": self.consecutive_failures,
            "last_failure_at": self.last_failure_at,
        }


@dataclass(frozen=True)
class ReportStoreConfig:
    """Immutable configuration for report store operations."""

    enabled: bool
    base_url: str | None
    collection: str
    device_id: str
    shared_secret: str | None
    audience: str
    token_ttl_seconds: int
    timeout_seconds: float


@dataclass(frozen=True)
class RemoteReceipt:
    """Acknowledgment that the remote store persisted a report."""

    id: str


class ReportStore(Protocol):
    """Anything that can durably store a report and acknowledge it."""

    async def create(
        self, payload: Mapping[str, Any], *, idempotency_key: str | None = None
    ) -> RemoteReceipt:
        """Store ``payload`` and return its receipt, or raise on any failure."""
        ...


def load_report_store_config() -> ReportStoreConfig:
    """Build configuration object from global settings."""

    return ReportStoreConfig(
        enabled=bool(settings.report_store_enabled and settings.report_store_base_url),
        base_url=settings.report_store_base_url,
        collection=settings.report_store_collection,
        device_id=settings.report_store_device_id,
        shared_secret=settings.report_store_shared_secret,
        audience=settings.report_store_audience,
        token_ttl_seconds=settings.report_store_token_ttl_seconds,
        timeout_seconds=float(settings.report_store_http_timeout_seconds),
    )


class ReportStoreClient:
    """HTTP client for the hosted report collection."""

    def __init__(
        self,
        config: ReportStoreConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_report_store_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._circuit = StoreCircuit()
        self._stats = DeliveryStats()

    @property
    def enabled(self) -> bool:
        return self.config.enabled and bool(self.config.base_url)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise ReportStoreDisabledError("Remote report store is not enabled")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )

        return self._client

    def _build_auth_headers(self, *, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {"X-Madad-Device-Id": self.config.device_id}

        if self.config.shared_secret:
            now = int(time.time())
            claims = {
                "sub": self.config.device_id,
                "aud": self.config.audience,
                "iat": now,
                "exp": now + max(1, self.config.token_ttl_seconds),
                "jti": secrets.token_hex(8),
            }
            token = jwt.encode(claims, self.config.shared_secret, algorithm="HS256")
            headers["Authorization"] = f"Bearer {token}"

        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json_data: Any | None = None,
        idempotency_key: str | None = None,
    ) -> tuple[httpx.Response, float]:
        """Make one call and return the response with its duration in seconds.

        Raises:
            ReportStoreError: If the circuit is open or the store is unavailable.
                Rejected (4xx) responses are returned to the caller.
        """
        if not self._circuit.allows_request():
            raise ReportStoreError("Report store circuit is open; skipping call")

        client = await self._ensure_client()
        headers = self._build_auth_headers(idempotency_key=idempotency_key)
        endpoint = f"{method} {path}"
        started = time.monotonic()

        try:
            response = await client.request(method, path, json=json_data, headers=headers)
        except httpx.HTTPError as exc:
            error_type = "timeout" if isinstance(exc, httpx.TimeoutException) else "network_error"
            self._stats.record(endpoint, "unavailable", time.monotonic() - started, error_type)
            self._circuit.record_unavailable()
            raise ReportStoreError(f"Report store request failed: {exc}") from exc

        elapsed = time.monotonic() - started
        outcome = classify_status(response.status_code)
        error_type = None if outcome == "acknowledged" else f"http_{response.status_code}"
        self._stats.record(endpoint, outcome, elapsed, error_type)

        if outcome == "unavailable":
            self._circuit.record_unavailable()
            raise ReportStoreError(f"Report store responded with {response.status_code}")

        self._circuit.record_available()
        return response, elapsed

    async def create(
        self, payload: Mapping[str, Any], *, idempotency_key: str | None = None
    ) -> RemoteReceipt:
        """Create a report document in the remote collection.

        The payload is forwarded unchanged apart from the submission metadata
        the collection expects on every document.

        Args:
            payload: Report fields, opaque to this client.
            idempotency_key: Key letting the store drop a repeated delivery.

        Returns:
            Receipt carrying the server-assigned report id.

        Raises:
            ReportStoreError: If the report was not acknowledged.
        """
        if not self.enabled:
            raise ReportStoreDisabledError("Report submission not available")

        document = {
            **payload,
            "deviceId": self.config.device_id,
            "status": "submitted",
            "submittedAt": utcnow().isoformat(),
        }

        response, _ = await self._send(
            "POST",
            f"/api/{self.config.collection}",
            json_data=document,
            idempotency_key=idempotency_key,
        )

        if classify_status(response.status_code) == "rejected":
            raise ReportStoreError(f"Report store rejected the report ({response.status_code})")

        try:
            report_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ReportStoreError("Report store acknowledgment did not include an id") from exc

        if not report_id:
            raise ReportStoreError("Report store returned an empty report id")

        return RemoteReceipt(id=str(report_id))

    async def health_check(self) -> dict[str, Any]:
        """Call the store's health endpoint and summarize the result."""
        if not self.enabled:
            return {
                "status": "disabled",
                "enabled": False,
                "error": "Remote report store is disabled",
            }

        try:
            response, elapsed = await self._send("GET", "/health")
        except ReportStoreError as exc:
            return {
                "status": "error",
                "enabled": True,
                "error": str(exc),
                "circuit_breaker": self.circuit_status(),
            }

        health: dict[str, Any] = {
            "status": "healthy" if response.status_code == HTTP_OK else "unhealthy",
            "enabled": True,
            "response_time_ms": round(elapsed * 1000, 2),
            "circuit_breaker": self.circuit_status(),
        }
        if response.status_code != HTTP_OK:
            health["error"] = f"Report store returned status {response.status_code}"
        return health

    def circuit_status(self) -> dict[str, Any]:
        return self._circuit.status()

    def delivery_stats(self) -> dict[str, Any]:
        return self._stats.snapshot()

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


@functools.lru_cache(maxsize=1)
def get_report_store() -> ReportStoreClient:
    """Return the process-wide report store client."""
    return ReportStoreClient()

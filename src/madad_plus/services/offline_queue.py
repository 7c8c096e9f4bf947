"""Offline queue for emergency reports.

Reports that cannot reach the remote store right away are kept in durable
local storage and delivered later, one at a time, oldest first. An entry
leaves the queue only after the store has acknowledged it; every other
outcome leaves it in place with its attempt counter bumped.

The whole queue is a single JSON document under one storage key. Every
mutation re-reads that document, edits it by ``localId`` and writes it back
while holding ``_storage_lock``, so concurrent submissions and an in-flight
sync pass never overwrite each other.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from madad_plus.core.settings import settings
from madad_plus.db.time import utcnow
from madad_plus.schemas.report import PendingReport, SubmitResult, SyncResult
from madad_plus.services.connectivity import ConnectivityMonitor, Unsubscribe
from madad_plus.services.local_storage import LocalStorage, StorageError
from madad_plus.services.report_store import RemoteReceipt, ReportStore, ReportStoreError

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "offline-"

QueueListener = Callable[[int], None]
QueueEntries = list[Any]

_PAYLOAD_ADAPTER = TypeAdapter(dict[str, Any])


class OfflineQueueError(RuntimeError):
    """Raised when the offline queue cannot read or update local storage."""


class EnqueueError(OfflineQueueError):
    """Raised when a report could neither be delivered nor queued."""


def _entry_id(entry: Any) -> str | None:
    return entry.get("localId") if isinstance(entry, dict) else None


def _without(local_id: str, entries: QueueEntries) -> QueueEntries:
    return [entry for entry in entries if _entry_id(entry) != local_id]


def _with_failed_attempt(local_id: str, entries: QueueEntries) -> QueueEntries:
    updated = []
    for entry in entries:
        if _entry_id(entry) == local_id:
            entry = {**entry, "attempts": int(entry.get("attempts", 0)) + 1}
        updated.append(entry)
    return updated


def _is_well_formed(entry: Any) -> bool:
    try:
        PendingReport.model_validate(entry)
    except ValidationError:
        return False
    return True


class OfflineReportQueue:
    """Submits reports immediately when possible and queues them otherwise."""

    def __init__(
        self,
        store: ReportStore,
        monitor: ConnectivityMonitor,
        storage: LocalStorage | None = None,
        *,
        storage_key: str | None = None,
    ) -> None:
        self._store = store
        self._monitor = monitor
        self._storage = storage or LocalStorage()
        self.storage_key = storage_key or settings.offline_queue_storage_key
        self._storage_lock = asyncio.Lock()
        self._syncing = False
        self._listeners: list[QueueListener] = []
        self._unsubscribe_connectivity: Unsubscribe | None = None
        self._background: set[asyncio.Task[None]] = set()

    @property
    def syncing(self) -> bool:
        """True while a sync pass is in flight."""
        return self._syncing

    # Lifecycle

    async def start(self, *, sync_now: bool | None = None) -> None:
        """Subscribe to connectivity transitions.

        Args:
            sync_now: Drain immediately if online with pending reports.
                Defaults to ``OFFLINE_QUEUE_SYNC_ON_STARTUP``.
        """
        if self._unsubscribe_connectivity is None:
            self._unsubscribe_connectivity = self._monitor.on_change(
                self._on_connectivity_change
            )

        if sync_now is None:
            sync_now = settings.offline_queue_sync_on_startup
        if sync_now and self._monitor.is_online() and await self.pending_count() > 0:
            self._schedule_sync()

    async def stop(self) -> None:
        """Unsubscribe from connectivity and wait for background sync passes."""
        if self._unsubscribe_connectivity is not None:
            self._unsubscribe_connectivity()
            self._unsubscribe_connectivity = None

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            logger.info("Connectivity restored; draining offline report queue")
            self._schedule_sync()

    def _schedule_sync(self) -> None:
        task = asyncio.get_running_loop().create_task(self._sync_in_background())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _sync_in_background(self) -> None:
        try:
            result = await self.sync()
        except OfflineQueueError as exc:
            logger.error("Background sync of offline reports failed: %s", exc)
            return
        if result.synced or result.failed:
            logger.info(
                "Background sync finished: %d synced, %d failed", result.synced, result.failed
            )

    # Queue-changed notifications

    def subscribe(self, listener: QueueListener) -> Unsubscribe:
        """Call ``listener(pending_count)`` after every queue change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, pending: int) -> None:
        for listener in list(self._listeners):
            try:
                listener(pending)
            except Exception:
                logger.exception("Offline queue listener %r failed", listener)

    # Storage access

    @property
    def quarantine_key(self) -> str:
        """Storage key holding entries that could not be read as reports."""
        return f"{self.storage_key}-quarantine"

    def _read_list(self, key: str) -> QueueEntries:
        raw = self._storage.get_item(key)
        if raw is None:
            return []
        try:
            entries = json.loads(raw)
        except ValueError:
            logger.warning("Offline queue under %s is not valid JSON; ignoring it", key)
            return []
        if not isinstance(entries, list):
            logger.warning("Offline queue under %s is not a list; ignoring it", key)
            return []
        return entries

    def _read_entries(self) -> QueueEntries:
        return self._read_list(self.storage_key)

    def _move_malformed(self) -> tuple[int, int] | None:
        entries = self._read_entries()
        malformed = [entry for entry in entries if not _is_well_formed(entry)]
        if not malformed:
            return None

        held = self._read_list(self.quarantine_key)
        self._storage.set_item(self.quarantine_key, json.dumps([*held, *malformed]))
        kept = [entry for entry in entries if _is_well_formed(entry)]
        self._write_entries(kept)
        return len(kept), len(malformed)

    def _write_entries(self, entries: QueueEntries) -> None:
        if entries:
            self._storage.set_item(self.storage_key, json.dumps(entries))
        else:
            self._storage.remove_item(self.storage_key)

    def _apply(self, mutation: Callable[[QueueEntries], QueueEntries]) -> int:
        entries = mutation(self._read_entries())
        self._write_entries(entries)
        return len(entries)

    async def _load(self) -> QueueEntries:
        async with self._storage_lock:
            try:
                return await asyncio.to_thread(self._read_entries)
            except StorageError as exc:
                raise OfflineQueueError(f"Offline queue could not be read: {exc}") from exc

    async def _mutate(self, mutation: Callable[[QueueEntries], QueueEntries]) -> int:
        async with self._storage_lock:
            pending = await asyncio.to_thread(self._apply, mutation)
        self._notify(pending)
        return pending

    async def _quarantine_malformed(self) -> None:
        async with self._storage_lock:
            moved = await asyncio.to_thread(self._move_malformed)
        if moved is None:
            return

        pending, malformed = moved
        logger.warning(
            "Moved %d malformed offline queue entries to %s", malformed, self.quarantine_key
        )
        self._notify(pending)

    # Public operations

    async def submit(self, payload: Mapping[str, Any], *, defer: bool = False) -> SubmitResult:
        """Deliver a report now if online, otherwise queue it durably.

        The payload is converted to JSON-compatible values once, up front,
        so the immediate attempt and any later sync send identical data:
        datetimes become ISO-8601 strings, tuples become lists.

        Args:
            payload: Report fields, otherwise opaque to the queue.
            defer: Skip the immediate attempt and queue straight away.

        Returns:
            ``remote_id`` set when the store acknowledged the report, or
            ``queued`` with the ``local_id`` of the stored entry.

        Raises:
            EnqueueError: If the payload cannot be represented as JSON or the
                report could not be written to local storage.
        """
        local_id = f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"
        try:
            payload = _PAYLOAD_ADAPTER.dump_python(dict(payload), mode="json")
        except (TypeError, ValueError) as exc:
            raise EnqueueError(f"Report cannot be stored offline: {exc}") from exc

        if not defer and self._monitor.is_online():
            receipt = await self._deliver(local_id, payload)
            if receipt is not None:
                logger.info("Report delivered immediately as %s", receipt.id)
                return SubmitResult(success=True, remote_id=receipt.id)

        return await self._enqueue(local_id, payload)

    async def _enqueue(self, local_id: str, payload: dict[str, Any]) -> SubmitResult:
        try:
            record = PendingReport(
                local_id=local_id,
                payload=payload,
                enqueued_at=utcnow(),
                attempts=0,
            ).to_storage()
        except (TypeError, ValueError) as exc:
            raise EnqueueError(f"Report cannot be stored offline: {exc}") from exc

        def append(entries: QueueEntries) -> QueueEntries:
            if any(_entry_id(entry) == local_id for entry in entries):
                return entries
            return [*entries, record]

        try:
            pending = await self._mutate(append)
        except StorageError as exc:
            logger.error("Report %s could not be queued: %s", local_id, exc)
            raise EnqueueError(f"Report could not be saved for later delivery: {exc}") from exc

        logger.info("Report queued as %s (%d pending)", local_id, pending)
        return SubmitResult(success=True, local_id=local_id, queued=True)

    async def _deliver(self, local_id: str, payload: Mapping[str, Any]) -> RemoteReceipt | None:
        """Attempt one remote create; any failure yields None."""
        try:
            return await self._store.create(payload, idempotency_key=local_id)
        except ReportStoreError as exc:
            logger.warning("Delivery of report %s failed: %s", local_id, exc)
        except Exception:
            logger.exception("Unexpected error delivering report %s", local_id)
        return None

    async def sync(self) -> SyncResult:
        """Deliver queued reports oldest-first, one create call each.

        A call made while another pass is running returns zero counts
        without touching the queue.

        Raises:
            OfflineQueueError: If local storage fails mid-pass. Entries
                already removed stay removed; the rest remain queued.
        """
        if self._syncing:
            logger.debug("Sync already in progress; skipping")
            return SyncResult()

        self._syncing = True
        try:
            return await self._drain()
        except StorageError as exc:
            raise OfflineQueueError(f"Offline queue storage failed during sync: {exc}") from exc
        finally:
            self._syncing = False

    async def _drain(self) -> SyncResult:
        await self._quarantine_malformed()
        reports = await self.drained_snapshot()
        synced = failed = 0

        for report in reports:
            logger.debug(
                "Syncing report %s (previous attempts: %d)", report.local_id, report.attempts
            )
            receipt = await self._deliver(report.local_id, report.payload)
            if receipt is not None:
                await self._mutate(lambda entries, lid=report.local_id: _without(lid, entries))
                synced += 1
            else:
                await self._mutate(
                    lambda entries, lid=report.local_id: _with_failed_attempt(lid, entries)
                )
                failed += 1

        if reports:
            logger.info("Offline sync pass: %d synced, %d failed", synced, failed)
        return SyncResult(synced=synced, failed=failed)

    async def pending_count(self) -> int:
        """Return the number of deliverable reports in the queue.

        Entries that do not parse as reports are left out; the next sync
        pass moves them under ``quarantine_key``.
        """
        return sum(1 for entry in await self._load() if _is_well_formed(entry))

    async def drained_snapshot(self) -> list[PendingReport]:
        """Return the queued reports oldest-first without modifying them.

        Malformed entries are skipped, matching ``pending_count``.
        """
        reports = []
        for entry in await self._load():
            try:
                reports.append(PendingReport.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping malformed offline queue entry %r: %s", entry, exc)
        return reports

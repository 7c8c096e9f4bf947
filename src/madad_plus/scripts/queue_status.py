# src/madad_plus/scripts/queue_status.py
"""
Inspect the offline report queue from the command line.

Lists pending reports oldest-first with their age and failed attempts so
stuck entries stand out, and can optionally run one sync pass against the
configured report store.

Usage:
    python -m madad_plus.scripts.queue_status
    python -m madad_plus.scripts.queue_status --json
    python -m madad_plus.scripts.queue_status --sync
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from datetime import datetime

from madad_plus.db.session import create_tables
from madad_plus.db.time import utcnow
from madad_plus.schemas.report import PendingReport
from madad_plus.services.connectivity import ManualConnectivityMonitor
from madad_plus.services.local_storage import LocalStorage
from madad_plus.services.offline_queue import OfflineQueueError, OfflineReportQueue
from madad_plus.services.report_store import ReportStoreClient

DEFAULT_STUCK_ATTEMPTS = 5


def format_age(enqueued_at: datetime, now: datetime) -> str:
    """Render the time since ``enqueued_at`` as a compact string such as ``2h05m``."""
    seconds = max(0, int((now - enqueued_at).total_seconds()))
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes:02d}m"
    if minutes:
        return f"{minutes}m{seconds:02d}s"
    return f"{seconds}s"


def render_table(
    reports: Sequence[PendingReport], now: datetime, stuck_attempts: int
) -> list[str]:
    """Format queued reports as human-readable lines."""
    if not reports:
        return ["Offline queue is empty."]

    lines = [f"{len(reports)} report(s) pending:"]
    for report in reports:
        marker = "  STUCK" if report.attempts >= stuck_attempts else ""
        lines.append(
            f"  {report.local_id}  type={report.payload.get('type', '?')}"
            f"  age={format_age(report.enqueued_at, now)}"
            f"  attempts={report.attempts}{marker}"
        )
    return lines


async def _run(args: argparse.Namespace) -> int:
    store = ReportStoreClient()
    queue = OfflineReportQueue(store, ManualConnectivityMonitor(online=True), LocalStorage())

    try:
        if args.sync:
            if not store.enabled:
                print("Report store is not configured; nothing to sync against.", file=sys.stderr)
                return 2
            result = await queue.sync()
            print(f"Synced {result.synced}, failed {result.failed}")

        reports = await queue.drained_snapshot()
    except OfflineQueueError as exc:
        print(f"Offline queue unavailable: {exc}", file=sys.stderr)
        return 1
    finally:
        await store.close()

    if args.json:
        print(json.dumps([report.to_storage() for report in reports], indent=2))
    else:
        print("\n".join(render_table(reports, utcnow(), args.stuck_attempts)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect the Madad+ offline report queue.")
    parser.add_argument("--json", action="store_true", help="Print the raw queue records.")
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Run one sync pass against the configured report store first.",
    )
    parser.add_argument(
        "--stuck-attempts",
        type=int,
        default=DEFAULT_STUCK_ATTEMPTS,
        help="Flag entries with at least this many failed attempts.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    create_tables()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())

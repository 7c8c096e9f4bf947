# tests/test_queue_status_cli.py
import json
from datetime import datetime, timedelta, timezone

import pytest

from madad_plus.db.time import utcnow
from madad_plus.schemas.report import PendingReport
from madad_plus.scripts.queue_status import main
from madad_plus.services.local_storage import StorageError

QUEUE_KEY = "madadgar-offline-queue"


@pytest.fixture()
def cli_storage(mocker, local_storage):
    """Point the CLI at the test database instead of the configured one."""
    mocker.patch("madad_plus.scripts.queue_status.create_tables")
    mocker.patch("madad_plus.scripts.queue_status.LocalStorage", return_value=local_storage)
    return local_storage


def _seed(storage, *records: dict) -> None:
    storage.set_item(QUEUE_KEY, json.dumps(list(records)))


def _record(local_id: str, *, attempts: int = 0, age: timedelta = timedelta(minutes=5)) -> dict:
    return PendingReport(
        local_id=local_id,
        payload={"type": "Fire", "description": f"report {local_id}", "location": None},
        enqueued_at=utcnow() - age,
        attempts=attempts,
    ).to_storage()


def test_empty_queue(cli_storage, capsys) -> None:
    assert main([]) == 0

    assert capsys.readouterr().out.strip() == "Offline queue is empty."


def test_table_flags_stuck_reports(cli_storage, capsys) -> None:
    _seed(
        cli_storage,
        _record("offline-old", attempts=3, age=timedelta(hours=2)),
        _record("offline-new"),
    )

    assert main(["--stuck-attempts", "3"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "2 report(s) pending:"
    assert "offline-old" in lines[1] and lines[1].endswith("STUCK")
    assert "type=Fire" in lines[1]
    assert "offline-new" in lines[2] and "STUCK" not in lines[2]


def test_json_prints_stored_records(cli_storage, capsys) -> None:
    first, second = _record("offline-a"), _record("offline-b", attempts=1)
    _seed(cli_storage, first, second)

    assert main(["--json"]) == 0

    assert json.loads(capsys.readouterr().out) == [first, second]


def test_sync_requires_configured_store(cli_storage, capsys) -> None:
    _seed(cli_storage, _record("offline-a"))

    assert main(["--sync"]) == 2

    assert "not configured" in capsys.readouterr().err
    assert len(json.loads(cli_storage.get_item(QUEUE_KEY))) == 1


def test_sync_drains_queue(cli_storage, store_client, store_server, mocker, capsys) -> None:
    mocker.patch("madad_plus.scripts.queue_status.ReportStoreClient", return_value=store_client)
    _seed(cli_storage, _record("offline-a"), _record("offline-b"))

    assert main(["--sync"]) == 0

    out = capsys.readouterr().out
    assert "Synced 2, failed 0" in out
    assert "Offline queue is empty." in out
    assert [document["description"] for document in store_server.created] == [
        "report offline-a",
        "report offline-b",
    ]
    assert [request.headers["Idempotency-Key"] for request in store_server.requests] == [
        "offline-a",
        "offline-b",
    ]


def test_sync_reports_failed_deliveries(
    cli_storage, store_client, store_server, mocker, capsys
) -> None:
    mocker.patch("madad_plus.scripts.queue_status.ReportStoreClient", return_value=store_client)
    store_server.status_code = 503
    _seed(cli_storage, _record("offline-a"))

    assert main(["--sync", "--json"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("Synced 0, failed 1")
    (record,) = json.loads(out.split("\n", 1)[1])
    assert record["attempts"] == 1


def test_storage_failure_exits_with_error(cli_storage, mocker, capsys) -> None:
    mocker.patch.object(cli_storage, "get_item", side_effect=StorageError("database is locked"))

    assert main([]) == 1

    assert "Offline queue unavailable" in capsys.readouterr().err


def test_table_age_is_measured_from_now(cli_storage, capsys, mocker) -> None:
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    mocker.patch("madad_plus.scripts.queue_status.utcnow", return_value=now)
    record = PendingReport(
        local_id="offline-a",
        payload={"type": "Fire"},
        enqueued_at=now - timedelta(minutes=90),
    ).to_storage()
    _seed(cli_storage, record)

    assert main([]) == 0

    assert "age=1h30m" in capsys.readouterr().out

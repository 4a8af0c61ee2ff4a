"""Tests for the due-connection scheduler."""

# pylint: disable=redefined-outer-name

import os
import sys
import threading
from pathlib import Path

import pytest

from sokoni.database import ConnectionRepository, ConnectionRequest, Database, FileRepository
from sokoni.errors import TraversalError
from sokoni.scanner import ConnectionScanner, ScanStats
from sokoni.scheduler import DueConnectionScheduler

NOW = 1_700_000_000.0
INTERVAL = 3600


@pytest.fixture
def db(tmp_path: Path):
    with Database(tmp_path / "test.db") as database:
        yield database


def _create(
    db: Database,
    base_path: str,
    last_scan: float | None = None,
    auto_scan: bool = True,
    scan_interval: int = INTERVAL,
) -> int:
    repo = ConnectionRepository(db)
    conn = repo.create(
        ConnectionRequest(
            name=f"conn-{base_path}",
            base_path=base_path,
            scan_interval=scan_interval,
            auto_scan=auto_scan,
        ),
        user_id=-1,
    )
    if last_scan is not None:
        repo.mark_scanned(conn.id, last_scan)
    return conn.id


class RecordingScanner:
    """Stands in for ConnectionScanner; fails for ids in ``failing``."""

    def __init__(self, failing: set[int] | None = None, on_scan=None):
        self.failing = failing or set()
        self.on_scan = on_scan
        self.scanned: list[int] = []

    def scan(self, connection) -> ScanStats:
        self.scanned.append(connection.id)
        if self.on_scan:
            self.on_scan(connection)
        if connection.id in self.failing:
            raise TraversalError("share", "network unreachable")
        return ScanStats(files_scanned=1, files_committed=1)


class TestDueSelection:
    """Tests for which connections are considered due."""

    def test_never_scanned_is_due(self, db: Database):
        connection_id = _create(db, "/a")

        due = ConnectionRepository(db).get_due(NOW)

        assert [c.id for c in due] == [connection_id]

    def test_auto_scan_disabled_is_never_due(self, db: Database):
        _create(db, "/a", auto_scan=False)
        _create(db, "/b", last_scan=NOW - 10 * INTERVAL, auto_scan=False)

        assert ConnectionRepository(db).get_due(NOW) == []

    def test_interval_elapsed_by_one_second_is_due(self, db: Database):
        connection_id = _create(db, "/a", last_scan=NOW - INTERVAL - 1)

        due = ConnectionRepository(db).get_due(NOW)

        assert [c.id for c in due] == [connection_id]

    def test_interval_not_yet_elapsed_is_not_due(self, db: Database):
        _create(db, "/a", last_scan=NOW - INTERVAL + 1)

        assert ConnectionRepository(db).get_due(NOW) == []

    def test_model_agrees_with_query(self, db: Database):
        _create(db, "/a", last_scan=NOW - INTERVAL - 1)
        _create(db, "/b", last_scan=NOW - INTERVAL + 1)
        _create(db, "/c", auto_scan=False)

        repo = ConnectionRepository(db)
        due_ids = {c.id for c in repo.get_due(NOW)}

        assert {c.id for c in repo.list_all() if c.is_due(NOW)} == due_ids


class TestScanDueConnections:
    """Tests for one scheduler tick."""

    def test_scans_due_connections_in_order_and_stamps(self, db: Database):
        first = _create(db, "/a")
        second = _create(db, "/b", last_scan=NOW - INTERVAL - 1)
        _create(db, "/c", last_scan=NOW - 10)
        scanner = RecordingScanner()
        scheduler = DueConnectionScheduler(db, scanner, clock=lambda: NOW)

        result = scheduler.scan_due_connections()

        assert scanner.scanned == [first, second]
        assert result.scanned == [first, second]
        repo = ConnectionRepository(db)
        assert repo.get(first, -1).last_scan_unix == NOW
        assert repo.get(second, -1).last_scan_unix == NOW

    def test_failure_is_logged_and_next_connection_still_scanned(self, db: Database, caplog):
        failing = _create(db, "/a")
        healthy = _create(db, "/b")
        scanner = RecordingScanner(failing={failing})
        scheduler = DueConnectionScheduler(db, scanner, clock=lambda: NOW)

        result = scheduler.scan_due_connections()

        assert result.failed == [failing]
        assert result.scanned == [healthy]
        repo = ConnectionRepository(db)
        assert repo.get(failing, -1).last_scan_unix is None
        assert repo.get(healthy, -1).last_scan_unix == NOW
        assert "network unreachable" in caplog.text

    def test_failed_connection_is_retried_next_tick(self, db: Database):
        failing = _create(db, "/a")
        scanner = RecordingScanner(failing={failing})
        scheduler = DueConnectionScheduler(db, scanner, clock=lambda: NOW)

        scheduler.scan_due_connections()
        scanner.failing.clear()
        scheduler.scan_due_connections()

        assert scanner.scanned == [failing, failing]
        assert ConnectionRepository(db).get(failing, -1).last_scan_unix == NOW

    def test_nothing_due(self, db: Database):
        _create(db, "/a", last_scan=NOW)
        scanner = RecordingScanner()

        result = DueConnectionScheduler(db, scanner, clock=lambda: NOW).scan_due_connections()

        assert result.due == 0
        assert scanner.scanned == []

    def test_stop_is_honored_between_connections(self, db: Database):
        first = _create(db, "/a")
        _create(db, "/b")
        scheduler: DueConnectionScheduler

        def stop_after_first(_connection) -> None:
            scheduler.stop()

        scanner = RecordingScanner(on_scan=stop_after_first)
        scheduler = DueConnectionScheduler(db, scanner, clock=lambda: NOW)

        result = scheduler.scan_due_connections()

        assert scanner.scanned == [first]
        assert result.scanned == [first]

    def test_end_to_end_with_real_scanner(self, db: Database, tmp_path: Path):
        source = tmp_path / "source"
        source.mkdir()
        (source / "a.pdf").write_bytes(b"12345")
        (source / "b.PDF").write_bytes(b"0123456789")
        (source / "note.txt").write_text("skip")
        connection_id = _create(db, str(source))
        broken = _create(db, str(tmp_path / "missing"))

        scheduler = DueConnectionScheduler(db, ConnectionScanner(db), clock=lambda: NOW)
        result = scheduler.scan_due_connections()

        assert result.scanned == [connection_id]
        assert result.failed == [broken]
        assert result.files_processed == 2
        assert FileRepository(db).count_for_connection(connection_id) == 2


class TestSchedulerLoop:
    """Tests for the run/stop loop."""

    def test_runs_immediately_then_stops(self, db: Database):
        connection_id = _create(db, "/a")
        scanned = threading.Event()
        scanner = RecordingScanner(on_scan=lambda _c: scanned.set())
        scheduler = DueConnectionScheduler(db, scanner, check_interval=3600, clock=lambda: NOW)

        thread = threading.Thread(target=scheduler.run)
        thread.start()
        assert scanned.wait(timeout=5)
        scheduler.stop()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert scheduler.stopped
        assert scanner.scanned == [connection_id]

    def test_ticks_repeat_until_stopped(self, db: Database):
        _create(db, "/a")
        ticks = []
        done = threading.Event()
        scheduler = DueConnectionScheduler(db, RecordingScanner(), check_interval=0.01)

        original = scheduler.scan_due_connections

        def counting_tick():
            ticks.append(1)
            if len(ticks) >= 3:
                done.set()
            return original()

        scheduler.scan_due_connections = counting_tick  # type: ignore[method-assign]
        thread = threading.Thread(target=scheduler.run)
        thread.start()
        assert done.wait(timeout=5)
        scheduler.stop()
        thread.join(timeout=5)

        assert len(ticks) >= 3


class TestUnexpectedFailures:
    """Tests that one connection's failure never ends the tick."""

    @pytest.mark.skipif(sys.platform != "linux", reason="needs byte-level file names")
    def test_undecodable_file_name_fails_only_its_connection(self, db: Database, tmp_path: Path):
        bad_root = tmp_path / "bad"
        bad_root.mkdir()
        with open(os.path.join(os.fsencode(bad_root), b"caf\xe9.pdf"), "wb") as f:
            f.write(b"x")
        good_root = tmp_path / "good"
        good_root.mkdir()
        (good_root / "a.pdf").write_bytes(b"12345")
        bad = _create(db, str(bad_root))
        good = _create(db, str(good_root))

        scheduler = DueConnectionScheduler(db, ConnectionScanner(db), clock=lambda: NOW)
        result = scheduler.scan_due_connections()

        assert result.failed == [bad]
        assert result.scanned == [good]
        assert FileRepository(db).count_for_connection(good) == 1

    def test_unexpected_exception_is_logged_and_next_connection_scanned(
        self, db: Database, caplog
    ):
        broken = _create(db, "/a")
        healthy = _create(db, "/b")

        def explode(connection) -> None:
            if connection.id == broken:
                raise RuntimeError("driver crashed")

        scanner = RecordingScanner(on_scan=explode)
        result = DueConnectionScheduler(db, scanner, clock=lambda: NOW).scan_due_connections()

        assert result.failed == [broken]
        assert result.scanned == [healthy]
        assert "driver crashed" in caplog.text

"""Background loop that re-scans connections whose interval has elapsed."""

import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from sokoni.database import ConnectionRepository, Database
from sokoni.errors import SokoniError
from sokoni.scanner import ConnectionScanner

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 6 * 60 * 60


@dataclass
class SchedulerRunStats:
    """Outcome of one due-connection check."""

    due: int = 0
    scanned: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    files_processed: int = 0


class DueConnectionScheduler:
    """Scans due connections once at start, then every ``check_interval``.

    Connections are scanned one after another. ``stop()`` is honored
    between connections, never in the middle of one.
    """

    def __init__(
        self,
        db: Database,
        scanner: ConnectionScanner,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self.connections = ConnectionRepository(db)
        self.scanner = scanner
        self.check_interval = check_interval
        self.clock = clock
        self._stop = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run(self) -> None:
        logger.info("Scheduler started (checking every %s seconds)", self.check_interval)
        self.scan_due_connections()
        while not self._stop.wait(self.check_interval):
            self.scan_due_connections()
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stop.set()

    def scan_due_connections(self) -> SchedulerRunStats:
        run_stats = SchedulerRunStats()
        try:
            due = self.connections.get_due(self.clock())
        except sqlite3.Error as e:
            logger.error("Error getting due connections: %s", e)
            return run_stats

        run_stats.due = len(due)
        if not due:
            logger.info("No connections due for scanning")
            return run_stats

        logger.info("Found %d connections due for scanning", len(due))

        for connection in due:
            if self._stop.is_set():
                logger.info("Stop requested; leaving remaining connections for later")
                break

            try:
                stats = self.scanner.scan(connection)
                self.connections.mark_scanned(connection.id, self.clock())
            except SokoniError as e:
                logger.error("Error scanning connection %s: %s", connection.name, e)
                run_stats.failed.append(connection.id)
                continue
            except Exception:
                logger.exception("Unexpected error scanning connection %s", connection.name)
                run_stats.failed.append(connection.id)
                continue

            run_stats.scanned.append(connection.id)
            run_stats.files_processed += stats.files_committed
            logger.info(
                "Completed scan for %s: processed %d files",
                connection.name,
                stats.files_committed,
            )

        return run_stats

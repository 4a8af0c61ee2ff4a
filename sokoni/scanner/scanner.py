"""Scan a single connection into the database."""

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Protocol

from sokoni.database import Connection, ConnectionRepository, Database
from sokoni.errors import AuthorizationError, ScanInProgressError
from sokoni.scanner.ingest import DEFAULT_BATCH_SIZE, IngestWriter
from sokoni.scanner.paths import LocalTarget, SMBTarget, classify_connection
from sokoni.scanner.progress import ProgressReporter, ScanStats
from sokoni.scanner.smb import DEFAULT_PORT, SMBBackend, SMBSession
from sokoni.scanner.walker import DirectoryBackend, LocalBackend, walk

logger = logging.getLogger(__name__)


class Authorizer(Protocol):
    def check(self, user_id: int, connection: Connection) -> None: ...


class OwnerAuthorizer:
    """Only the connection's owner may act on it."""

    def check(self, user_id: int, connection: Connection) -> None:
        if connection.user_id != user_id:
            raise AuthorizationError(f"connection {connection.id} not found")


class ConnectionLocks:
    """In-process advisory lock per connection id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    @contextmanager
    def hold(self, connection_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(connection_id, threading.Lock())
        if not lock.acquire(blocking=False):
            raise ScanInProgressError(connection_id)
        try:
            yield
        finally:
            lock.release()


_default_locks = ConnectionLocks()


@contextmanager
def open_backend(
    target: LocalTarget | SMBTarget,
    connection: Connection,
    smb_port: int = DEFAULT_PORT,
) -> Iterator[tuple[DirectoryBackend, str]]:
    """Yield a walker backend and the root to walk for ``target``."""
    if isinstance(target, SMBTarget):
        with SMBSession(
            target.server,
            target.share,
            username=connection.username,
            password=connection.password,
            port=smb_port,
        ) as session:
            yield SMBBackend(session), target.path
    else:
        yield LocalBackend(), str(target.root)


class ConnectionScanner:
    """Walks a connection's files and stores every PDF found."""

    def __init__(
        self,
        db: Database,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress_interval: int = 1000,
        smb_port: int = DEFAULT_PORT,
        authorizer: Authorizer | None = None,
        locks: ConnectionLocks | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.connections = ConnectionRepository(db)
        self.batch_size = batch_size
        self.progress_interval = progress_interval
        self.smb_port = smb_port
        self.authorizer = authorizer or OwnerAuthorizer()
        self.locks = locks or _default_locks
        self.clock = clock

    def scan_connection(self, connection_id: int, user_id: int) -> ScanStats:
        """On-demand scan on behalf of ``user_id``."""
        connection = self.connections.get_any(connection_id)
        self.authorizer.check(user_id, connection)
        stats = self.scan(connection)
        self.connections.mark_scanned(connection.id, self.clock())
        return stats

    def scan(self, connection: Connection) -> ScanStats:
        """Walk and ingest ``connection`` without touching ``last_scan``."""
        target = classify_connection(connection)
        logger.info(
            "Scanning connection: %s (ID: %d, Path: %s)",
            connection.name,
            connection.id,
            connection.base_path,
        )

        with self.locks.hold(connection.id):
            progress = ProgressReporter(interval=self.progress_interval)
            writer = IngestWriter(
                self.db,
                connection.id,
                batch_size=self.batch_size,
                progress=progress,
            )
            with open_backend(target, connection, self.smb_port) as (backend, root):
                walk(backend, root, writer)
            writer.flush()

        progress.report_completion(connection.name, writer.stats)
        return writer.stats

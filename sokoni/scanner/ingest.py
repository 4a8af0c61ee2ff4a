"""Batched, idempotent persistence of discovered files."""

import logging
import sqlite3
import time
from collections.abc import Iterable

from sokoni.database import Database
from sokoni.errors import PersistenceError
from sokoni.scanner.progress import ProgressReporter, ScanStats
from sokoni.scanner.walker import FileInfo

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

UPSERT_SQL = """
    INSERT INTO files (
        connection_id, path, name, size,
        mod_time_unix, mod_time,
        created_at_unix, created_at, updated_at_unix, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (path) DO UPDATE
    SET size = excluded.size,
        mod_time_unix = excluded.mod_time_unix,
        mod_time = excluded.mod_time,
        updated_at_unix = excluded.updated_at_unix,
        updated_at = excluded.updated_at
"""


class IngestWriter:
    """Accumulates file records and commits them one batch per transaction.

    A failing record rolls back its whole batch; batches committed before
    it stay committed.
    """

    def __init__(
        self,
        db: Database,
        connection_id: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress: ProgressReporter | None = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.db = db
        self.connection_id = connection_id
        self.batch_size = batch_size
        self.progress = progress or ProgressReporter()
        self.stats = ScanStats()
        self._batch: list[FileInfo] = []

    def add(self, file: FileInfo) -> None:
        self._batch.append(file)
        self.stats.files_scanned += 1
        self.stats.total_bytes += file.size
        if len(self._batch) >= self.batch_size:
            self._commit_batch()
            self.progress.report_if_needed(self.stats)

    __call__ = add

    def flush(self) -> None:
        if self._batch:
            self._commit_batch()

    def ingest(self, files: Iterable[FileInfo]) -> ScanStats:
        for file in files:
            self.add(file)
        self.flush()
        return self.stats

    def _commit_batch(self) -> None:
        batch, self._batch = self._batch, []
        now = time.time()
        conn = self.db.conn
        current_path = None
        try:
            with conn:
                for f in batch:
                    current_path = f.path
                    conn.execute(
                        UPSERT_SQL,
                        (
                            self.connection_id,
                            f.path,
                            f.name,
                            f.size,
                            f.mod_time,
                            int(f.mod_time),
                            now,
                            int(now),
                            now,
                            int(now),
                        ),
                    )
        except (sqlite3.Error, UnicodeError) as e:
            raise PersistenceError(
                f"failed to store batch of {len(batch)} files "
                f"for connection {self.connection_id} at {current_path}: {e}"
            ) from e

        self.stats.files_committed += len(batch)
        self.stats.batches_committed += 1
        logger.debug(
            "Committed batch of %d files for connection %d",
            len(batch),
            self.connection_id,
        )

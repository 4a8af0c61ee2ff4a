"""Database connection management."""

import sqlite3
import threading
from pathlib import Path
from typing import Self

from .schema import create_schema


class Database:
    """SQLite database wrapper with context manager support.

    Each thread gets its own sqlite3 connection, so the scheduler and
    on-demand scans can share one ``Database`` without sharing a handle.
    """

    def __init__(self, db_path: Path, busy_timeout: float = 30.0):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []

    def connect(self) -> sqlite3.Connection:
        conn: sqlite3.Connection | None = getattr(self._local, "conn", None)
        if conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Handles stay thread-local; close() may run on another thread.
            conn = sqlite3.connect(
                self.db_path, timeout=self.busy_timeout, check_same_thread=False
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            create_schema(conn)
            self._local.conn = conn
            with self._lock:
                self._connections.append(conn)
        return conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self.connect()

    def close(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()

    def __enter__(self) -> Self:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

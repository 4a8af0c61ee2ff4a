"""Queries over the connections and files tables."""

import sqlite3
import time

from sokoni.database.connection import Database
from sokoni.database.models import (
    DEFAULT_SCAN_INTERVAL,
    Connection,
    ConnectionRequest,
    FileRecord,
)
from sokoni.errors import ConnectionNotFoundError, InvalidConnectionError, PersistenceError


class ConnectionRepository:
    """CRUD for connections, scoped to the owning user."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, request: ConnectionRequest, user_id: int) -> Connection:
        _validate(request)
        scan_interval = request.scan_interval or DEFAULT_SCAN_INTERVAL
        auto_scan = True if request.auto_scan is None else request.auto_scan
        now = time.time()

        with self.db.conn as conn:
            cursor = conn.execute(
                """
                INSERT INTO connections (
                    name, base_path, remote_path, username, password, options,
                    user_id, scan_interval, auto_scan,
                    created_at_unix, created_at, updated_at_unix, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    request.name,
                    request.base_path,
                    request.remote_path,
                    request.username,
                    request.password,
                    request.options,
                    user_id,
                    scan_interval,
                    int(auto_scan),
                    now,
                    int(now),
                    now,
                    int(now),
                ),
            )
        return self.get(cursor.lastrowid, user_id)

    def get(self, connection_id: int, user_id: int) -> Connection:
        row = self.db.conn.execute(
            "SELECT * FROM connections WHERE id = ? AND user_id = ?",
            (connection_id, user_id),
        ).fetchone()
        if row is None:
            raise ConnectionNotFoundError(connection_id)
        return Connection.from_row(row)

    def get_any(self, connection_id: int) -> Connection:
        """Load a connection regardless of owner; callers authorize separately."""
        row = self.db.conn.execute(
            "SELECT * FROM connections WHERE id = ?",
            (connection_id,),
        ).fetchone()
        if row is None:
            raise ConnectionNotFoundError(connection_id)
        return Connection.from_row(row)

    def list_by_user(self, user_id: int) -> list[Connection]:
        rows = self.db.conn.execute(
            "SELECT * FROM connections WHERE user_id = ? ORDER BY created_at_unix DESC, id DESC",
            (user_id,),
        ).fetchall()
        return [Connection.from_row(row) for row in rows]

    def list_all(self) -> list[Connection]:
        rows = self.db.conn.execute("SELECT * FROM connections ORDER BY id").fetchall()
        return [Connection.from_row(row) for row in rows]

    def update(self, connection_id: int, user_id: int, request: ConnectionRequest) -> Connection:
        _validate(request)
        now = time.time()
        with self.db.conn as conn:
            cursor = conn.execute(
                """
                UPDATE connections
                SET name = ?, base_path = ?, remote_path = ?,
                    username = ?, password = ?, options = ?,
                    scan_interval = COALESCE(?, scan_interval),
                    auto_scan = COALESCE(?, auto_scan),
                    updated_at_unix = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    request.name,
                    request.base_path,
                    request.remote_path,
                    request.username,
                    request.password,
                    request.options,
                    request.scan_interval,
                    None if request.auto_scan is None else int(request.auto_scan),
                    now,
                    int(now),
                    connection_id,
                    user_id,
                ),
            )
        if cursor.rowcount == 0:
            raise ConnectionNotFoundError(connection_id)
        return self.get(connection_id, user_id)

    def delete(self, connection_id: int, user_id: int) -> None:
        with self.db.conn as conn:
            cursor = conn.execute(
                "DELETE FROM connections WHERE id = ? AND user_id = ?",
                (connection_id, user_id),
            )
        if cursor.rowcount == 0:
            raise ConnectionNotFoundError(connection_id)

    def get_due(self, now: float) -> list[Connection]:
        """Connections with auto_scan enabled whose interval has elapsed."""
        rows = self.db.conn.execute(
            """
            SELECT * FROM connections
            WHERE auto_scan = 1
            AND (last_scan_unix IS NULL OR last_scan_unix + scan_interval < ?)
            ORDER BY id
            """,
            (now,),
        ).fetchall()
        return [Connection.from_row(row) for row in rows]

    def mark_scanned(self, connection_id: int, scanned_at: float) -> None:
        try:
            with self.db.conn as conn:
                conn.execute(
                    "UPDATE connections SET last_scan_unix = ?, last_scan = ? WHERE id = ?",
                    (scanned_at, int(scanned_at), connection_id),
                )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"failed to update last_scan for connection {connection_id}: {e}"
            ) from e


class FileRepository:
    """Read access to discovered files."""

    def __init__(self, db: Database):
        self.db = db

    def search_by_name(self, query: str, limit: int = 100) -> list[FileRecord]:
        rows = self.db.conn.execute(
            """
            SELECT * FROM files
            WHERE name LIKE ? ESCAPE '\\'
            ORDER BY name COLLATE NOCASE, path
            LIMIT ?
            """,
            (f"%{_escape_like(query)}%", limit),
        ).fetchall()
        return [FileRecord.from_row(row) for row in rows]

    def get_by_path(self, path: str) -> FileRecord | None:
        row = self.db.conn.execute("SELECT * FROM files WHERE path = ?", (path,)).fetchone()
        return FileRecord.from_row(row) if row else None

    def count_for_connection(self, connection_id: int) -> int:
        return self.db.conn.execute(
            "SELECT COUNT(*) FROM files WHERE connection_id = ?",
            (connection_id,),
        ).fetchone()[0]


def _validate(request: ConnectionRequest) -> None:
    if not request.name.strip():
        raise InvalidConnectionError("name must not be empty")
    if not request.base_path.strip():
        raise InvalidConnectionError("base_path must not be empty")
    if request.scan_interval is not None and request.scan_interval <= 0:
        raise InvalidConnectionError(
            f"scan_interval must be positive, got {request.scan_interval}"
        )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

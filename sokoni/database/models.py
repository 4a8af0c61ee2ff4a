"""Data models for the database."""

import sqlite3
from dataclasses import dataclass

DEFAULT_SCAN_INTERVAL = 7 * 24 * 60 * 60


@dataclass
class Connection:
    """Represents a configured scan target."""

    id: int
    name: str
    base_path: str
    remote_path: str
    username: str | None
    password: str | None
    options: str | None
    user_id: int
    last_scan_unix: float | None
    last_scan: int | None
    scan_interval: int
    auto_scan: bool
    created_at_unix: float
    created_at: int
    updated_at_unix: float
    updated_at: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Connection":
        return cls(
            id=row["id"],
            name=row["name"],
            base_path=row["base_path"],
            remote_path=row["remote_path"],
            username=row["username"],
            password=row["password"],
            options=row["options"],
            user_id=row["user_id"],
            last_scan_unix=row["last_scan_unix"],
            last_scan=row["last_scan"],
            scan_interval=row["scan_interval"],
            auto_scan=bool(row["auto_scan"]),
            created_at_unix=row["created_at_unix"],
            created_at=row["created_at"],
            updated_at_unix=row["updated_at_unix"],
            updated_at=row["updated_at"],
        )

    def is_due(self, now: float) -> bool:
        if not self.auto_scan:
            return False
        if self.last_scan_unix is None:
            return True
        return self.last_scan_unix + self.scan_interval < now


@dataclass
class ConnectionRequest:
    """Fields supplied when creating or updating a connection.

    ``scan_interval`` and ``auto_scan`` left as None keep their current
    value on update and take the defaults on create.
    """

    name: str
    base_path: str
    remote_path: str = ""
    username: str | None = None
    password: str | None = None
    options: str | None = None
    scan_interval: int | None = None
    auto_scan: bool | None = None


@dataclass
class FileRecord:
    """Represents a stored file row."""

    id: int
    connection_id: int
    path: str
    name: str
    size: int
    mod_time_unix: float
    mod_time: int
    created_at_unix: float
    created_at: int
    updated_at_unix: float
    updated_at: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "FileRecord":
        return cls(**{key: row[key] for key in row.keys()})

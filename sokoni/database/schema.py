"""Database schema definition."""

import sqlite3

SCHEMA_SQL = """
-- Scan targets: one root location plus credentials and cadence
CREATE TABLE IF NOT EXISTS connections (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    base_path TEXT NOT NULL,
    remote_path TEXT NOT NULL DEFAULT '',
    username TEXT,
    password TEXT,
    options TEXT,
    user_id INTEGER NOT NULL DEFAULT -1,
    last_scan_unix REAL,
    last_scan INTEGER,
    scan_interval INTEGER NOT NULL DEFAULT 604800 CHECK (scan_interval > 0),
    auto_scan INTEGER NOT NULL DEFAULT 1,
    created_at_unix REAL NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at_unix REAL NOT NULL,
    updated_at INTEGER NOT NULL
);

-- Discovered PDF files; path is unique across all connections
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY,
    connection_id INTEGER NOT NULL REFERENCES connections(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    name TEXT NOT NULL,
    size INTEGER NOT NULL CHECK (size >= 0),
    mod_time_unix REAL NOT NULL,
    mod_time INTEGER NOT NULL,
    created_at_unix REAL NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at_unix REAL NOT NULL,
    updated_at INTEGER NOT NULL,
    UNIQUE(path)
);

CREATE INDEX IF NOT EXISTS idx_connections_user ON connections(user_id);
CREATE INDEX IF NOT EXISTS idx_connections_due
    ON connections(last_scan_unix) WHERE auto_scan = 1;
CREATE INDEX IF NOT EXISTS idx_files_connection ON files(connection_id);
CREATE INDEX IF NOT EXISTS idx_files_name ON files(name COLLATE NOCASE);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they do not exist."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()

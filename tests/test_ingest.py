"""Tests for batched file ingestion."""

# pylint: disable=redefined-outer-name

from pathlib import Path

import pytest

from sokoni.database import ConnectionRepository, ConnectionRequest, Database
from sokoni.errors import PersistenceError
from sokoni.scanner.ingest import IngestWriter
from sokoni.scanner.walker import FileInfo


@pytest.fixture
def db(tmp_path: Path):
    with Database(tmp_path / "test.db") as database:
        yield database


def _create_connection(db: Database, name: str = "docs") -> int:
    conn = ConnectionRepository(db).create(
        ConnectionRequest(name=name, base_path="/srv/docs"), user_id=-1
    )
    return conn.id


def _files(count: int, start: int = 0, size: int = 100) -> list[FileInfo]:
    return [
        FileInfo(path=f"/srv/docs/{i:04d}.pdf", name=f"{i:04d}.pdf", size=size, mod_time=1000.0 + i)
        for i in range(start, start + count)
    ]


def _rows(db: Database) -> list[tuple]:
    return [
        tuple(row)
        for row in db.conn.execute(
            "SELECT connection_id, path, name, size, mod_time_unix FROM files ORDER BY path"
        ).fetchall()
    ]


class TestIngestWriter:
    """Tests for IngestWriter."""

    def test_commits_full_batches_and_remainder(self, db: Database):
        connection_id = _create_connection(db)
        writer = IngestWriter(db, connection_id, batch_size=100)

        stats = writer.ingest(_files(250))

        assert stats.files_committed == 250
        assert stats.batches_committed == 3
        assert len(_rows(db)) == 250

    def test_batch_commits_when_full(self, db: Database):
        connection_id = _create_connection(db)
        writer = IngestWriter(db, connection_id, batch_size=3)

        for f in _files(4):
            writer.add(f)

        assert len(_rows(db)) == 3
        writer.flush()
        assert len(_rows(db)) == 4

    def test_flush_on_empty_batch_is_noop(self, db: Database):
        connection_id = _create_connection(db)
        writer = IngestWriter(db, connection_id)

        writer.flush()

        assert writer.stats.batches_committed == 0

    def test_rejects_non_positive_batch_size(self, db: Database):
        with pytest.raises(ValueError):
            IngestWriter(db, 1, batch_size=0)

    def test_ingest_is_idempotent(self, db: Database):
        connection_id = _create_connection(db)
        files = _files(120)

        IngestWriter(db, connection_id).ingest(files)
        first = _rows(db)
        IngestWriter(db, connection_id).ingest(files)

        assert _rows(db) == first
        assert len(first) == 120

    def test_changed_file_is_updated_in_place(self, db: Database):
        connection_id = _create_connection(db)
        original = FileInfo(path="/srv/docs/a.pdf", name="a.pdf", size=5, mod_time=1000.0)
        changed = FileInfo(path="/srv/docs/a.pdf", name="a.pdf", size=9, mod_time=2000.5)

        IngestWriter(db, connection_id).ingest([original])
        IngestWriter(db, connection_id).ingest([changed])

        assert _rows(db) == [(connection_id, "/srv/docs/a.pdf", "a.pdf", 9, 2000.5)]

    def test_update_refreshes_updated_at_only(self, db: Database):
        connection_id = _create_connection(db)
        f = FileInfo(path="/srv/docs/a.pdf", name="a.pdf", size=5, mod_time=1000.0)
        IngestWriter(db, connection_id).ingest([f])
        db.conn.execute("UPDATE files SET created_at_unix = 1, updated_at_unix = 1")
        db.conn.commit()

        IngestWriter(db, connection_id).ingest([f])

        row = db.conn.execute("SELECT created_at_unix, updated_at_unix FROM files").fetchone()
        assert row["created_at_unix"] == 1
        assert row["updated_at_unix"] > 1

    def test_path_is_unique_across_connections(self, db: Database):
        first = _create_connection(db, "first")
        second = _create_connection(db, "second")
        f = FileInfo(path="/shared/a.pdf", name="a.pdf", size=5, mod_time=1000.0)

        IngestWriter(db, first).ingest([f])
        IngestWriter(db, second).ingest([f])

        count = db.conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]
        assert count == 1

    def test_failed_batch_rolls_back_but_keeps_earlier_batches(self, db: Database):
        connection_id = _create_connection(db)
        bad = FileInfo(path="/srv/docs/bad.pdf", name="bad.pdf", size=-1, mod_time=0.0)
        files = _files(100) + _files(49, start=100) + [bad] + _files(10, start=200)
        writer = IngestWriter(db, connection_id, batch_size=100)

        with pytest.raises(PersistenceError) as excinfo:
            writer.ingest(files)

        assert "bad.pdf" in str(excinfo.value)
        rows = _rows(db)
        assert len(rows) == 100
        assert rows[-1][1] == "/srv/docs/0099.pdf"
        assert writer.stats.batches_committed == 1

    def test_unknown_connection_fails_to_persist(self, db: Database):
        writer = IngestWriter(db, 404)

        with pytest.raises(PersistenceError):
            writer.ingest(_files(1))

        assert _rows(db) == []

    def test_unencodable_name_fails_to_persist(self, db: Database):
        connection_id = _create_connection(db)
        bad = FileInfo(path="/srv/docs/caf\udce9.pdf", name="caf\udce9.pdf", size=1, mod_time=0.0)
        writer = IngestWriter(db, connection_id)

        with pytest.raises(PersistenceError):
            writer.ingest(_files(3) + [bad])

        assert _rows(db) == []

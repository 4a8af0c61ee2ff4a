"""Depth-first PDF discovery over a local or remote directory tree."""

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Protocol

from sokoni.errors import FilesystemError

logger = logging.getLogger(__name__)

PDF_EXTENSION = ".pdf"


@dataclass(frozen=True)
class FileInfo:
    """A discovered PDF as handed to ingestion callbacks."""

    path: str
    name: str
    size: int
    mod_time: float


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing, in the backend's own path form."""

    name: str
    path: str
    is_dir: bool
    size: int
    mod_time: float


class DirectoryBackend(Protocol):
    def read_dir(self, path: str) -> list[DirEntry]: ...

    def record_path(self, path: str) -> str: ...


class LocalBackend:
    """Lists directories on the local filesystem with ``os.scandir``."""

    def read_dir(self, path: str) -> list[DirEntry]:
        entries: list[DirEntry] = []
        try:
            with os.scandir(path) as it:
                for entry in it:
                    dir_entry = self._to_dir_entry(entry)
                    if dir_entry is not None:
                        entries.append(dir_entry)
        except OSError as e:
            raise FilesystemError(getattr(e, "filename", None) or path, str(e)) from e
        return entries

    def record_path(self, path: str) -> str:
        return path

    def _to_dir_entry(self, entry: os.DirEntry) -> DirEntry | None:
        if entry.is_symlink():
            logger.debug("Skipping symlink: %s", entry.path)
            return None

        if entry.is_dir(follow_symlinks=False):
            return DirEntry(name=entry.name, path=entry.path, is_dir=True, size=0, mod_time=0.0)

        if not entry.is_file(follow_symlinks=False):
            return None

        stat_result = entry.stat(follow_symlinks=False)
        return DirEntry(
            name=entry.name,
            path=entry.path,
            is_dir=False,
            size=stat_result.st_size,
            mod_time=stat_result.st_mtime,
        )


def is_pdf(name: str) -> bool:
    return name.lower().endswith(PDF_EXTENSION)


def iter_pdfs(backend: DirectoryBackend, root: str) -> Iterator[FileInfo]:
    """Yield every PDF under ``root`` in the backend's directory order.

    The first directory read failure propagates and ends the iteration.
    """
    for entry in backend.read_dir(root):
        if entry.is_dir:
            yield from iter_pdfs(backend, entry.path)
        elif is_pdf(entry.name):
            yield FileInfo(
                path=backend.record_path(entry.path),
                name=entry.name,
                size=entry.size,
                mod_time=entry.mod_time,
            )


def walk(backend: DirectoryBackend, root: str, on_file: Callable[[FileInfo], None]) -> int:
    """Invoke ``on_file`` for each PDF; an exception from it aborts the walk."""
    count = 0
    for file in iter_pdfs(backend, root):
        on_file(file)
        count += 1
    return count


def collect(backend: DirectoryBackend, root: str) -> list[FileInfo]:
    return list(iter_pdfs(backend, root))

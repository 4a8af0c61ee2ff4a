"""Scanner module for PDF discovery and ingestion."""

from .ingest import IngestWriter
from .paths import LocalTarget, SMBTarget, classify_connection
from .progress import ProgressReporter, ScanStats
from .scanner import ConnectionLocks, ConnectionScanner, OwnerAuthorizer
from .smb import SMBBackend, SMBSession
from .walker import FileInfo, LocalBackend, collect, iter_pdfs, walk

__all__ = [
    "ConnectionScanner",
    "ConnectionLocks",
    "OwnerAuthorizer",
    "IngestWriter",
    "FileInfo",
    "LocalBackend",
    "LocalTarget",
    "SMBBackend",
    "SMBSession",
    "SMBTarget",
    "ProgressReporter",
    "ScanStats",
    "classify_connection",
    "collect",
    "iter_pdfs",
    "walk",
]

"""Database module for sokoni."""

from .connection import Database
from .models import Connection, ConnectionRequest, FileRecord
from .repository import ConnectionRepository, FileRepository
from .schema import create_schema

__all__ = [
    "Database",
    "create_schema",
    "Connection",
    "ConnectionRequest",
    "FileRecord",
    "ConnectionRepository",
    "FileRepository",
]

"""sokoni - indexes PDF files on local disks and SMB shares."""

__version__ = "0.1.0"

from sokoni.database import Database
from sokoni.scanner import ConnectionScanner
from sokoni.scheduler import DueConnectionScheduler

__all__ = ["Database", "ConnectionScanner", "DueConnectionScheduler"]

"""Configuration module for sokoni."""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    return Path(__file__).parent.parent


@dataclass
class ScannerConfig:
    batch_size: int = 100
    progress_interval: int = 1000
    default_root: Path = Path("/mnt/share")


@dataclass
class SchedulerConfig:
    check_interval: float = 6 * 60 * 60


@dataclass
class SMBConfig:
    port: int = 445


@dataclass
class Config:
    database_path: Path = field(default_factory=lambda: _get_project_root() / "data" / "sokoni.db")
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    smb: SMBConfig = field(default_factory=SMBConfig)
    # Stand-in owner until real authentication exists.
    default_user_id: int = -1

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()
        if database := os.environ.get("SOKONI_DATABASE"):
            config.database_path = Path(database)
        if batch_size := os.environ.get("SOKONI_BATCH_SIZE"):
            config.scanner.batch_size = int(batch_size)
            if config.scanner.batch_size <= 0:
                raise ValueError(f"SOKONI_BATCH_SIZE must be positive, got {batch_size}")
        if scan_root := os.environ.get("SOKONI_SCAN_ROOT"):
            config.scanner.default_root = Path(scan_root)
        if check_interval := os.environ.get("SOKONI_CHECK_INTERVAL"):
            config.scheduler.check_interval = float(check_interval)
        return config

"""Progress reporting utilities for scanning."""

import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    """Statistics for one connection scan."""

    files_scanned: int = 0
    files_committed: int = 0
    batches_committed: int = 0
    total_bytes: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time


class ProgressReporter:
    """Logs scan progress every ``interval`` files."""

    def __init__(self, interval: int = 1000):
        self.interval = interval
        self._last_report_count = 0

    def report_if_needed(self, stats: ScanStats) -> None:
        if stats.files_scanned - self._last_report_count >= self.interval:
            logger.info(
                "Processed %d files (%.1f files/sec)",
                stats.files_scanned,
                stats.files_scanned / max(1.0, stats.elapsed_seconds),
            )
            self._last_report_count = stats.files_scanned

    def report_completion(self, name: str, stats: ScanStats) -> None:
        logger.info(
            "Stored %d files (%s) for connection %s in %s",
            stats.files_committed,
            format_bytes(stats.total_bytes),
            name,
            format_duration(stats.elapsed_seconds),
        )


def format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_bytes(size: int | None) -> str:
    if size is None:
        return "0 B"
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"

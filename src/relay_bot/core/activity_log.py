"""Append-only activity log of channel traffic."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock

from relay_bot.core.logging import SessionStats

logger = logging.getLogger(__name__)


def normalize_line(text: str) -> str:
    """Collapse line breaks to spaces and trim surrounding whitespace."""
    return text.replace("\r\n", " ").replace("\r", " ").replace("\n", " ").strip()


def rfc3339_now() -> str:
    """Current local time as an RFC3339 timestamp with offset."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True)
class LogRecord:
    """One line of the activity log."""

    timestamp: str
    sender: str
    text: str

    def to_line(self) -> str:
        return f"{self.timestamp}\t{self.sender}\t{self.text}\n"


class ActivityLog:
    """Tab-separated, append-only log file shared by all handlers.

    The file is reopened for every append so that external rotation or
    truncation between calls is picked up. A single lock spans
    open-write-close, so concurrent appends never interleave.
    """

    def __init__(self, path: Path | str, stats: SessionStats | None = None):
        self.path = Path(path)
        self.stats = stats or SessionStats()
        self._lock = Lock()

    def append(self, sender: str, text: str) -> bool:
        """Append one record.

        Returns:
            True if the line was written, False if the write failed. Failures
            are logged and never raised.
        """
        record = LogRecord(
            timestamp=rfc3339_now(),
            sender=normalize_line(sender),
            text=normalize_line(text),
        )
        line = record.to_line()

        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                logger.error(f"Failed to append to activity log {self.path}: {e}")
                self.stats.increment("log_failures")
                return False

        self.stats.increment("logged")
        return True

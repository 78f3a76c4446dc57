"""
event_log.py - Bounded Operator Event Log

Append-only ring of recent operator-facing events. The log lives inside the
state snapshot as an immutable tuple (newest first), so appending returns a
new tuple rather than mutating the old one; readers holding an older
snapshot keep seeing the log as it was.

Every entry is mirrored to the standard ``logging`` logger so that a
developer running headless sees the same stream the dashboard would show.

Entry shape (the log sink contract):
    {id, type in {INFO, WARNING, CRITICAL, SYSTEM}, message, timestamp}
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_CAPACITY = 50


class LogType(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    SYSTEM = "SYSTEM"


_LEVELS = {
    LogType.INFO: logging.INFO,
    LogType.SYSTEM: logging.INFO,
    LogType.WARNING: logging.WARNING,
    LogType.CRITICAL: logging.CRITICAL,
}


# =============================================================================
# LogEntry
# =============================================================================

@dataclass(frozen=True)
class LogEntry:
    """One operator-facing event."""
    id: str
    type: LogType
    message: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def make_entry(log_type: LogType, message: str, now: Optional[float] = None) -> LogEntry:
    """Build an entry with a fresh id; ``now`` defaults to wall-clock time."""
    timestamp = time.time() if now is None else now
    return LogEntry(
        id=f"{int(timestamp * 1000)}-{uuid4().hex[:7]}",
        type=log_type,
        message=message,
        timestamp=timestamp,
    )


def append(
    log: Tuple[LogEntry, ...],
    entry: LogEntry,
    capacity: int = DEFAULT_CAPACITY,
) -> Tuple[LogEntry, ...]:
    """
    Return a new log with ``entry`` prepended, truncated to ``capacity``.

    Args:
        log: Current log, newest first
        entry: Entry to add
        capacity: Maximum number of retained entries

    Returns:
        New tuple; the input tuple is untouched
    """
    logger.log(_LEVELS[entry.type], "[%s] %s", entry.type.value, entry.message)
    return ((entry,) + tuple(log))[:capacity]


def extend(
    log: Tuple[LogEntry, ...],
    entries: Iterable[LogEntry],
    capacity: int = DEFAULT_CAPACITY,
) -> Tuple[LogEntry, ...]:
    """Append several entries in order (the last one ends up newest)."""
    for entry in entries:
        log = append(log, entry, capacity)
    return log


def by_type(log: Iterable[LogEntry], log_type: LogType) -> List[LogEntry]:
    return [e for e in log if e.type == log_type]


def to_records(log: Iterable[LogEntry]) -> List[Dict[str, Any]]:
    """Serialize for the display feed / JSON output."""
    return [e.to_dict() for e in log]

"""Session clock: remaining time, near-end warning and expiry."""

import time
from dataclasses import dataclass
from datetime import UTC, datetime

MS_PER_MINUTE = 60_000
DEFAULT_WARNING_THRESHOLD_MS = 15 * MS_PER_MINUTE


@dataclass(frozen=True)
class ClockReading:
    """Timer state of a session at a given instant."""

    remaining_ms: int
    is_expired: bool
    is_nearing_end: bool


def current_time_ms() -> int:
    """Return the current instant in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def read_clock(
    start_time: int,
    end_time: int,
    now: int,
    warning_threshold_ms: int = DEFAULT_WARNING_THRESHOLD_MS,
) -> ClockReading:
    """Evaluate a session window at ``now``."""
    remaining = end_time - now
    return ClockReading(
        remaining_ms=remaining,
        is_expired=remaining <= 0,
        is_nearing_end=0 < remaining <= warning_threshold_ms,
    )


def format_remaining(remaining_ms: int) -> str:
    """Format remaining time as M:SS for countdown display."""
    if remaining_ms <= 0:
        return "Time's up"
    total_seconds = remaining_ms // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def progress_percent(start_time: int, end_time: int, now: int) -> float:
    """Return the share of the window still remaining, clamped to 0-100."""
    total = end_time - start_time
    if total <= 0:
        return 0.0
    remaining = (end_time - now) / total * 100
    return max(0.0, min(100.0, remaining))


def format_timestamp(epoch_ms: int) -> str:
    """Human-readable UTC timestamp used for check-in and check-out labels."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)
    return moment.isoformat(timespec="seconds")


def parse_timestamp(value: str) -> datetime | None:
    """Parse a label produced by ``format_timestamp``; None if unreadable."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed

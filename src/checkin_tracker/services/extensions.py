"""Extension policy: cap, cooldown and grant size for session extensions."""

import math
from dataclasses import dataclass, replace

from checkin_tracker.domain.sessions import Interval
from checkin_tracker.services.clock import MS_PER_MINUTE

MAX_EXTENSIONS = 3
EXTENSION_MINUTES = 30
EXTENSION_COOLDOWN_MS = 60 * MS_PER_MINUTE


@dataclass(frozen=True)
class ExtensionGranted:
    """Bookkeeping for an approved extension."""

    end_time: int
    duration: int
    extension_count: int
    last_extension_time: int


@dataclass(frozen=True)
class ExtensionDenied:
    """An extension blocked by the cooldown gate."""

    reason: str
    retry_after_ms: int

    @property
    def retry_after_minutes(self) -> int:
        return math.ceil(self.retry_after_ms / MS_PER_MINUTE)


ExtensionOutcome = ExtensionGranted | ExtensionDenied


@dataclass(frozen=True)
class ExtensionPolicy:
    """Decides whether a session may be extended."""

    max_extensions: int = MAX_EXTENSIONS
    extension_minutes: int = EXTENSION_MINUTES
    cooldown_ms: int = EXTENSION_COOLDOWN_MS

    def request_extension(self, interval: Interval, now: int) -> ExtensionOutcome:
        """Grant or deny one extension for ``interval`` at ``now``."""
        count = interval.extension_count
        if count < self.max_extensions:
            next_count = count + 1
        else:
            last = interval.last_extension_time
            if last is not None and now - last < self.cooldown_ms:
                retry_after = self.cooldown_ms - (now - last)
                minutes = math.ceil(retry_after / MS_PER_MINUTE)
                return ExtensionDenied(
                    reason=f"Please wait {minutes} minutes before extending again",
                    retry_after_ms=retry_after,
                )
            # Waiting out the cooldown restarts the counter.
            next_count = 1
        return ExtensionGranted(
            end_time=now + self.extension_minutes * MS_PER_MINUTE,
            duration=interval.duration + self.extension_minutes,
            extension_count=next_count,
            last_extension_time=now,
        )


def apply_extension(interval: Interval, grant: ExtensionGranted) -> Interval:
    """Return ``interval`` with a granted extension folded in."""
    return replace(
        interval,
        duration=grant.duration,
        end_time=grant.end_time,
        is_nearing_end=False,
        has_extended=True,
        extension_count=grant.extension_count,
        last_extension_time=grant.last_extension_time,
    )

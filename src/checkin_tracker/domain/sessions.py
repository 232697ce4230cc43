"""Domain models for customer sessions."""

from dataclasses import dataclass, field

STATUS_WAITING = "waiting"
STATUS_CHECKED_IN = "checked-in"
STATUS_CHECKED_OUT = "checked-out"
SESSION_STATUSES = (STATUS_WAITING, STATUS_CHECKED_IN, STATUS_CHECKED_OUT)

DURATION_OPTIONS: tuple[tuple[str, int], ...] = (
    ("30 minutes", 30),
    ("1 hour", 60),
    ("1.5 hours", 90),
    ("2 hours", 120),
)


@dataclass(frozen=True)
class Interval:
    """Time tracking fields embedded in a session."""

    duration: int
    start_time: int
    end_time: int
    is_nearing_end: bool = False
    has_extended: bool = False
    extension_count: int = 0
    last_extension_time: int | None = None


@dataclass(frozen=True)
class VisitRecord:
    """Immutable log entry appended when a session ends."""

    check_in: str
    check_out: str
    duration: int
    was_extended: bool
    completed_session: bool
    time_ended: bool
    extensions_used: int


@dataclass(frozen=True)
class Session:
    """A customer's check-in session with its live timer state."""

    id: str
    name: str
    status: str
    check_in_time: str
    interval: Interval
    photo: str | None = None
    history: tuple[VisitRecord, ...] = ()

    @property
    def is_checked_in(self) -> bool:
        return self.status == STATUS_CHECKED_IN


@dataclass(frozen=True)
class SessionDraft:
    """Fields supplied by the caller when creating a session."""

    name: str
    duration: int
    status: str = STATUS_CHECKED_IN


@dataclass(frozen=True)
class SessionChanges:
    """Partial update sent to the persistence gateway.

    Fields left as ``None`` are not touched. ``new_history`` entries are
    appended to the stored history, never replacing it.
    """

    name: str | None = None
    status: str | None = None
    check_in_time: str | None = None
    interval: Interval | None = None
    photo: str | None = None
    clear_photo: bool = False
    new_history: tuple[VisitRecord, ...] = field(default_factory=tuple)

    def is_empty(self) -> bool:
        return (
            self.name is None
            and self.status is None
            and self.check_in_time is None
            and self.interval is None
            and self.photo is None
            and not self.clear_photo
            and not self.new_history
        )

"""Session state machine for customer check-ins."""

from dataclasses import dataclass, field, replace
from typing import Protocol

from checkin_tracker.domain.errors import SessionValidationError
from checkin_tracker.domain.sessions import (
    STATUS_CHECKED_IN,
    STATUS_CHECKED_OUT,
    Interval,
    Session,
    SessionChanges,
    SessionDraft,
    VisitRecord,
)
from checkin_tracker.services.clock import (
    DEFAULT_WARNING_THRESHOLD_MS,
    MS_PER_MINUTE,
    ClockReading,
    format_timestamp,
    read_clock,
)
from checkin_tracker.services.extensions import (
    ExtensionDenied,
    ExtensionGranted,
    ExtensionPolicy,
    apply_extension,
)


class SessionRepository(Protocol):
    """Persistence interface for customer sessions."""

    def list_sessions(self) -> list[Session]:
        """Return every stored session."""

    def create_session(self, draft: SessionDraft) -> Session:
        """Create a session, assigning its id and time window."""

    def update_session(self, session_id: str, changes: SessionChanges) -> Session:
        """Merge a partial update into a session and return the result."""

    def delete_session(self, session_id: str) -> None:
        """Delete a session."""


@dataclass(frozen=True)
class SessionTransition:
    """Outcome of a state machine step.

    ``session`` is the new in-memory state and ``changes`` the partial update
    the gateway must persist. ``visit`` is set when the step ended a session.
    """

    event: str
    session: Session
    changes: SessionChanges = field(default_factory=SessionChanges)
    visit: VisitRecord | None = None


def validate_name(name: str) -> str:
    cleaned = name.strip() if isinstance(name, str) else ""
    if not cleaned:
        raise SessionValidationError("Name is required", ["name: must not be empty"])
    return cleaned


def validate_duration(duration: int) -> int:
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise SessionValidationError(
            "Duration must be a positive number of minutes",
            [f"duration: invalid value {duration!r}"],
        )
    return duration


def new_interval(duration: int, now: int) -> Interval:
    """Fresh interval anchored at ``now`` with extension bookkeeping reset."""
    return Interval(
        duration=duration,
        start_time=now,
        end_time=now + duration * MS_PER_MINUTE,
    )


@dataclass
class SessionStateMachine:
    """Applies clock and extension policy outcomes to one session."""

    policy: ExtensionPolicy = field(default_factory=ExtensionPolicy)
    warning_threshold_ms: int = DEFAULT_WARNING_THRESHOLD_MS

    def read(self, session: Session, now: int) -> ClockReading:
        """Read the session clock with the configured warning threshold."""
        return read_clock(
            session.interval.start_time,
            session.interval.end_time,
            now,
            self.warning_threshold_ms,
        )

    def check_in(
        self, session_id: str, name: str, duration: int, now: int
    ) -> SessionTransition:
        """Create a checked-in session for ``name``."""
        session = Session(
            id=session_id,
            name=validate_name(name),
            status=STATUS_CHECKED_IN,
            check_in_time=format_timestamp(now),
            interval=new_interval(validate_duration(duration), now),
        )
        return SessionTransition(event="check_in", session=session)

    def edit_time(self, session: Session, duration: int, now: int) -> SessionTransition:
        """Re-check-in with a new duration anchored at ``now``."""
        interval = new_interval(validate_duration(duration), now)
        check_in_time = format_timestamp(now)
        updated = replace(
            session,
            status=STATUS_CHECKED_IN,
            check_in_time=check_in_time,
            interval=interval,
        )
        return SessionTransition(
            event="edit_time",
            session=updated,
            changes=SessionChanges(
                status=STATUS_CHECKED_IN,
                check_in_time=check_in_time,
                interval=interval,
            ),
        )

    def update(
        self, session: Session, name: str | None, duration: int | None, now: int
    ) -> SessionTransition:
        """Rename and/or re-check-in as a single change.

        Every supplied field is validated before anything is built, so a bad
        duration never lets a rename through.
        """
        if name is None and duration is None:
            raise SessionValidationError(
                "Nothing to update", ["body: provide name or duration"]
            )
        cleaned = validate_name(name) if name is not None else None
        if duration is not None:
            validate_duration(duration)
        if cleaned is not None and duration is None:
            return self.rename(session, cleaned)
        transition = self.edit_time(session, duration, now)
        if cleaned is None:
            return transition
        return replace(
            transition,
            event="update",
            session=replace(transition.session, name=cleaned),
            changes=replace(transition.changes, name=cleaned),
        )

    def rename(self, session: Session, name: str) -> SessionTransition:
        cleaned = validate_name(name)
        return SessionTransition(
            event="rename",
            session=replace(session, name=cleaned),
            changes=SessionChanges(name=cleaned),
        )

    def set_photo(self, session: Session, photo_url: str | None) -> SessionTransition:
        if photo_url is None:
            changes = SessionChanges(clear_photo=True)
        else:
            changes = SessionChanges(photo=photo_url)
        return SessionTransition(
            event="set_photo" if photo_url is not None else "clear_photo",
            session=replace(session, photo=photo_url),
            changes=changes,
        )

    def extend(
        self, session: Session, now: int
    ) -> tuple[SessionTransition | None, ExtensionGranted | ExtensionDenied]:
        """Request an extension; the transition is None when denied."""
        if not session.is_checked_in:
            raise SessionValidationError(
                "Only checked-in customers can be extended",
                [f"status: {session.status}"],
            )
        outcome = self.policy.request_extension(session.interval, now)
        if isinstance(outcome, ExtensionDenied):
            return None, outcome
        interval = apply_extension(session.interval, outcome)
        transition = SessionTransition(
            event="extend",
            session=replace(session, interval=interval),
            changes=SessionChanges(interval=interval),
        )
        return transition, outcome

    def check_out(self, session: Session, now: int) -> SessionTransition | None:
        """Manual checkout; None when the session is not checked in."""
        if not session.is_checked_in:
            return None
        interval = replace(session.interval, end_time=now, is_nearing_end=False)
        visit = _visit_record(session, now, time_ended=False)
        return self._end(session, interval, visit, "check_out")

    def expire(self, session: Session, now: int) -> SessionTransition | None:
        """Automatic checkout once the clock reports expiry.

        Returns None if the session is not checked in or has time left, so
        repeated calls from independent timers are harmless.
        """
        if not session.is_checked_in or not self.read(session, now).is_expired:
            return None
        interval = replace(session.interval, is_nearing_end=False)
        visit = _visit_record(session, now, time_ended=True)
        return self._end(session, interval, visit, "expire")

    def refresh_warning(self, session: Session, now: int) -> SessionTransition | None:
        """Sync ``isNearingEnd`` with the clock; None when already in sync."""
        if not session.is_checked_in:
            return None
        nearing = self.read(session, now).is_nearing_end
        if nearing == session.interval.is_nearing_end:
            return None
        interval = replace(session.interval, is_nearing_end=nearing)
        return SessionTransition(
            event="near_end",
            session=replace(session, interval=interval),
            changes=SessionChanges(interval=interval),
        )

    def _end(
        self, session: Session, interval: Interval, visit: VisitRecord, event: str
    ) -> SessionTransition:
        updated = replace(
            session,
            status=STATUS_CHECKED_OUT,
            interval=interval,
            history=(*session.history, visit),
        )
        return SessionTransition(
            event=event,
            session=updated,
            changes=SessionChanges(
                status=STATUS_CHECKED_OUT,
                interval=interval,
                new_history=(visit,),
            ),
            visit=visit,
        )


def _visit_record(session: Session, now: int, time_ended: bool) -> VisitRecord:
    interval = session.interval
    return VisitRecord(
        check_in=session.check_in_time,
        check_out=format_timestamp(now),
        duration=interval.duration,
        was_extended=interval.has_extended,
        completed_session=not time_ended,
        time_ended=time_ended,
        extensions_used=interval.extension_count,
    )

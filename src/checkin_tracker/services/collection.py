"""In-memory working set of customer sessions."""

from dataclasses import dataclass, field

from checkin_tracker.domain.errors import SessionNotFoundError
from checkin_tracker.domain.sessions import (
    STATUS_CHECKED_IN,
    STATUS_CHECKED_OUT,
    Session,
)
from checkin_tracker.services.clock import parse_timestamp
from checkin_tracker.services.sessions import SessionStateMachine, SessionTransition


@dataclass(frozen=True)
class PendingChange:
    """A tentative in-memory change awaiting persistence.

    ``previous`` is the session as it was before the change, or None when the
    change inserted a new session.
    """

    event: str
    session_id: str
    previous: Session | None
    transition: SessionTransition | None = None


@dataclass(frozen=True)
class CollectionCounts:
    """Headline counters for the customer list."""

    total: int
    checked_in: int
    checked_out: int


def sort_key(session: Session, now: int) -> tuple[int, float]:
    """Checked-in first by soonest expiry, everyone else by latest check-in."""
    if session.status == STATUS_CHECKED_IN:
        return (0, session.interval.end_time - now)
    checked_in_at = parse_timestamp(session.check_in_time)
    if checked_in_at is None:
        return (1, float("inf"))
    return (1, -checked_in_at.timestamp())


def sort_sessions(sessions: list[Session], now: int) -> list[Session]:
    return sorted(sessions, key=lambda session: sort_key(session, now))


@dataclass
class CustomerCollection:
    """Holds the sessions shown to staff and keeps them ordered."""

    state_machine: SessionStateMachine
    _sessions: dict[str, Session] = field(default_factory=dict)
    _ordered: list[Session] = field(default_factory=list)

    def replace_all(self, sessions: list[Session], now: int) -> None:
        """Swap the whole working set, e.g. after a reload."""
        self._sessions = {session.id: session for session in sessions}
        self._resort(now)

    def ordered(self) -> list[Session]:
        return list(self._ordered)

    def find(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def search(self, term: str | None) -> list[Session]:
        """Return ordered sessions whose name contains ``term``."""
        if not term:
            return self.ordered()
        needle = term.strip().lower()
        return [session for session in self._ordered if needle in session.name.lower()]

    def counts(self) -> CollectionCounts:
        statuses = [session.status for session in self._sessions.values()]
        return CollectionCounts(
            total=len(statuses),
            checked_in=statuses.count(STATUS_CHECKED_IN),
            checked_out=statuses.count(STATUS_CHECKED_OUT),
        )

    def apply(self, transition: SessionTransition, now: int) -> PendingChange:
        """Tentatively store the session produced by ``transition``."""
        session = transition.session
        change = PendingChange(
            event=transition.event,
            session_id=session.id,
            previous=self._sessions.get(session.id),
            transition=transition,
        )
        self._sessions[session.id] = session
        self._resort(now)
        return change

    def remove(self, session_id: str, now: int) -> PendingChange:
        """Tentatively drop a session from the working set."""
        previous = self.get(session_id)
        del self._sessions[session_id]
        self._resort(now)
        return PendingChange(event="delete", session_id=session_id, previous=previous)

    def replace_id(self, provisional_id: str, session: Session, now: int) -> None:
        """Swap a provisionally keyed session for the stored one."""
        self._sessions.pop(provisional_id, None)
        self._sessions[session.id] = session
        self._resort(now)

    def discard(self, change: PendingChange, now: int) -> None:
        """Undo a tentative change."""
        if change.previous is None:
            self._sessions.pop(change.session_id, None)
        else:
            self._sessions[change.session_id] = change.previous
        self._resort(now)

    def scan(self, now: int) -> list[PendingChange]:
        """Expire overdue sessions and refresh near-end flags.

        The working set is only re-sorted when at least one session changed.
        """
        changes: list[PendingChange] = []
        for session in list(self._sessions.values()):
            transition = self.state_machine.expire(
                session, now
            ) or self.state_machine.refresh_warning(session, now)
            if transition is None:
                continue
            changes.append(
                PendingChange(
                    event=transition.event,
                    session_id=session.id,
                    previous=session,
                    transition=transition,
                )
            )
            self._sessions[session.id] = transition.session
        if changes:
            self._resort(now)
        return changes

    def _resort(self, now: int) -> None:
        self._ordered = sort_sessions(list(self._sessions.values()), now)

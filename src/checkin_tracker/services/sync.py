"""Optimistic synchronization between the working set and the remote store.

Every mutation is applied to the in-memory collection first, tagged with the
event that caused it, and then persisted. A failed write discards the
tentative change by reloading the whole collection from the store.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NoReturn
from uuid import uuid4

from checkin_tracker.domain.documents import (
    session_from_document,
    session_to_document,
)
from checkin_tracker.domain.errors import PersistenceError, SessionNotFoundError
from checkin_tracker.domain.sessions import Session, SessionDraft
from checkin_tracker.services.cache import SESSIONS_KEY, LocalCache
from checkin_tracker.services.clock import ClockReading, current_time_ms
from checkin_tracker.services.collection import CustomerCollection, PendingChange
from checkin_tracker.services.extensions import ExtensionDenied, ExtensionGranted
from checkin_tracker.services.records import CustomerRecordService
from checkin_tracker.services.sessions import (
    SessionRepository,
    SessionStateMachine,
    SessionTransition,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_RETENTION_MS = 24 * 60 * 60 * 1000
PROVISIONAL_ID_PREFIX = "local-"

_FAILURE_ACTIONS = {
    "check_in": "check in customer",
    "edit_time": "update customer",
    "rename": "update customer",
    "update": "update customer",
    "set_photo": "update customer photo",
    "clear_photo": "update customer photo",
    "extend": "extend time",
    "check_out": "check out customer",
    "expire": "check out customer",
    "near_end": "update customer",
    "delete": "delete customer",
}


@dataclass
class SessionSyncService:
    """Applies session transitions locally and persists them remotely."""

    repository: SessionRepository
    collection: CustomerCollection
    cache: LocalCache
    records: CustomerRecordService
    clock: Callable[[], int] = current_time_ms
    cache_retention_ms: int = DEFAULT_CACHE_RETENTION_MS
    pending: list[PendingChange] = field(default_factory=list)

    @property
    def state_machine(self) -> SessionStateMachine:
        return self.collection.state_machine

    def load(self) -> list[Session]:
        """Initial load: remote store first, local cache if that fails."""
        now = self.clock()
        try:
            sessions = self.repository.list_sessions()
        except Exception:
            logger.exception("Failed to fetch customers; falling back to local cache")
            self.collection.replace_all(self._cached_sessions(now), now)
            return self.collection.ordered()
        self.collection.replace_all(sessions, now)
        self._mirror()
        return self.collection.ordered()

    def reload(self) -> bool:
        """Replace the working set with the remote store's sessions."""
        try:
            sessions = self.repository.list_sessions()
        except Exception:
            logger.exception("Failed to reload customers")
            return False
        self.collection.replace_all(sessions, self.clock())
        self._mirror()
        return True

    def list_sessions(self, search: str | None = None) -> list[Session]:
        return self.collection.search(search)

    def get(self, session_id: str) -> Session:
        return self.collection.get(session_id)

    def read_timer(self, session_id: str) -> tuple[Session, ClockReading]:
        """Read a session's clock, expiring it if time has run out."""
        session = self.expire(session_id)
        return session, self.state_machine.read(session, self.clock())

    def check_in(self, name: str, duration: int) -> Session:
        """Create a checked-in session for ``name``."""
        now = self.clock()
        provisional_id = f"{PROVISIONAL_ID_PREFIX}{uuid4()}"
        transition = self.state_machine.check_in(provisional_id, name, duration, now)
        change = self._begin(transition, now)
        try:
            created = self.repository.create_session(
                SessionDraft(name=transition.session.name, duration=duration)
            )
        except Exception as exc:
            self._fail(change, exc)
        self.collection.replace_id(provisional_id, created, self.clock())
        self._confirm(change)
        logger.info("Checked in customer %s", created.id)
        return created

    def edit_time(self, session_id: str, duration: int) -> Session:
        """Re-check-in a customer with a fresh duration."""
        now = self.clock()
        transition = self.state_machine.edit_time(self.get(session_id), duration, now)
        return self._commit(transition, now)

    def update(
        self, session_id: str, name: str | None = None, duration: int | None = None
    ) -> Session:
        """Rename and/or re-check-in as one persisted change."""
        now = self.clock()
        session = self.get(session_id)
        transition = self.state_machine.update(session, name, duration, now)
        return self._commit(transition, now)

    def rename(self, session_id: str, name: str) -> Session:
        now = self.clock()
        transition = self.state_machine.rename(self.get(session_id), name)
        return self._commit(transition, now)

    def set_photo(self, session_id: str, photo_url: str | None) -> Session:
        now = self.clock()
        transition = self.state_machine.set_photo(self.get(session_id), photo_url)
        return self._commit(transition, now)

    def extend(
        self, session_id: str
    ) -> tuple[Session, ExtensionGranted | ExtensionDenied]:
        """Request an extension; a denial leaves the session untouched."""
        now = self.clock()
        session = self.get(session_id)
        transition, outcome = self.state_machine.extend(session, now)
        if transition is None:
            logger.info("Extension denied for %s: %s", session_id, outcome.reason)
            return session, outcome
        return self._commit(transition, now), outcome

    def check_out(self, session_id: str) -> Session:
        """Manual checkout; a no-op for sessions already checked out."""
        now = self.clock()
        session = self.get(session_id)
        transition = self.state_machine.check_out(session, now)
        if transition is None:
            return session
        return self._commit(transition, now)

    def expire(self, session_id: str) -> Session:
        """Automatic checkout if the session's time is up; otherwise a no-op."""
        now = self.clock()
        session = self.get(session_id)
        transition = self.state_machine.expire(session, now)
        if transition is None:
            return session
        return self._commit(transition, now)

    def delete(self, session_id: str) -> None:
        """Remove a session permanently."""
        now = self.clock()
        change = self.collection.remove(session_id, now)
        self.pending.append(change)
        try:
            self.repository.delete_session(session_id)
        except Exception as exc:
            self._fail(change, exc)
        self._confirm(change)
        self._best_effort(self.records.mark_inactive, session_id)
        logger.info("Deleted customer %s", session_id)

    def scan(self) -> list[SessionTransition]:
        """Expire overdue sessions and refresh near-end flags.

        Runs from the polling task, so failures are logged rather than
        raised; the first failed write triggers a reload and ends the pass.
        """
        now = self.clock()
        changes = self.collection.scan(now)
        applied: list[SessionTransition] = []
        for change in changes:
            transition = change.transition
            try:
                self.repository.update_session(change.session_id, transition.changes)
            except Exception:
                logger.exception(
                    "Failed to persist %s for %s", change.event, change.session_id
                )
                if not self.reload():
                    for remaining in reversed(changes[len(applied) :]):
                        self.collection.discard(remaining, self.clock())
                break
            applied.append(transition)
            if transition.visit is not None:
                logger.info("Session %s expired", change.session_id)
                self._best_effort(
                    self.records.record_visit, transition.session, transition.visit, now
                )
        if changes:
            self._mirror()
        return applied

    def replace_working_set(self, sessions: list[Session]) -> None:
        """Swap in sessions that did not come from the store, e.g. a backup.

        The cache is rewritten immediately so autosave keeps the new set.
        """
        self.collection.replace_all(sessions, self.clock())
        self.save_snapshot()

    def save_snapshot(self) -> None:
        """Write the whole working set to the local cache."""
        self.cache.set(
            SESSIONS_KEY,
            [session_to_document(session) for session in self.collection.ordered()],
        )

    def _commit(self, transition: SessionTransition, now: int) -> Session:
        change = self._begin(transition, now)
        try:
            if not transition.changes.is_empty():
                self.repository.update_session(change.session_id, transition.changes)
        except Exception as exc:
            self._fail(change, exc)
        self._confirm(change)
        if transition.visit is not None:
            self._best_effort(
                self.records.record_visit, transition.session, transition.visit, now
            )
        return transition.session

    def _begin(self, transition: SessionTransition, now: int) -> PendingChange:
        change = self.collection.apply(transition, now)
        self.pending.append(change)
        return change

    def _confirm(self, change: PendingChange) -> None:
        self.pending.remove(change)
        self._mirror()

    def _fail(self, change: PendingChange, exc: Exception) -> NoReturn:
        """Discard a tentative change and raise the matching error."""
        self.pending.remove(change)
        logger.exception("Failed to persist %s for %s", change.event, change.session_id)
        if not self.reload():
            self.collection.discard(change, self.clock())
            self._mirror()
        if isinstance(exc, SessionNotFoundError):
            raise exc
        action = _FAILURE_ACTIONS.get(change.event, "update customer")
        raise PersistenceError(f"Failed to {action}") from exc

    def _mirror(self) -> None:
        self._best_effort(self.save_snapshot)

    def _best_effort(self, action: Callable[..., object], *args: object) -> None:
        try:
            action(*args)
        except Exception:
            logger.warning("Local cache write failed", exc_info=True)

    def _cached_sessions(self, now: int) -> list[Session]:
        raw = self.cache.get(SESSIONS_KEY)
        if not isinstance(raw, list):
            return []
        sessions = []
        for item in raw:
            try:
                session = session_from_document(item)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed cached customer: %r", item)
                continue
            if session.is_checked_in or now - session.interval.end_time < (
                self.cache_retention_ms
            ):
                sessions.append(session)
        return sessions

"""Supabase-backed customer session repository."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from checkin_tracker.domain.documents import (
    interval_from_document,
    interval_to_document,
    visit_from_document,
    visit_to_document,
)
from checkin_tracker.domain.errors import SessionNotFoundError
from checkin_tracker.domain.sessions import Session, SessionChanges, SessionDraft
from checkin_tracker.services.clock import current_time_ms, format_timestamp
from checkin_tracker.services.sessions import SessionRepository, new_interval

_COLUMNS = "id, name, status, check_in_time, photo, interval_json, history_json"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for customer sessions.

    The interval and visit history are stored as JSON columns on a single
    ``customers`` row.
    """

    client: Client
    table: str = "customers"
    clock: Callable[[], int] = current_time_ms

    def list_sessions(self) -> list[Session]:
        """Return every customer row."""
        response = (
            self.client.table(self.table)
            .select(_COLUMNS)
            .order("created_at", desc=False)
            .execute()
        )
        return [_row_to_session(row) for row in response.data or []]

    def create_session(self, draft: SessionDraft) -> Session:
        """Insert a customer row with a window starting now."""
        now = self.clock()
        interval = new_interval(draft.duration, now)
        response = (
            self.client.table(self.table)
            .insert(
                {
                    "name": draft.name,
                    "status": draft.status,
                    "check_in_time": format_timestamp(now),
                    "photo": None,
                    "interval_json": interval_to_document(interval),
                    "history_json": [],
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create customer")
        return _row_to_session(response.data[0])

    def update_session(self, session_id: str, changes: SessionChanges) -> Session:
        """Merge changes into a row, appending any new visit records."""
        current = (
            self.client.table(self.table)
            .select("id, history_json")
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        if not current.data:
            raise SessionNotFoundError(session_id)

        payload: dict[str, object] = {
            "updated_at": datetime.now(tz=UTC).isoformat(),
        }
        if changes.name is not None:
            payload["name"] = changes.name
        if changes.status is not None:
            payload["status"] = changes.status
        if changes.check_in_time is not None:
            payload["check_in_time"] = changes.check_in_time
        if changes.interval is not None:
            payload["interval_json"] = interval_to_document(changes.interval)
        if changes.clear_photo:
            payload["photo"] = None
        elif changes.photo is not None:
            payload["photo"] = changes.photo
        if changes.new_history:
            history = list(current.data[0].get("history_json") or [])
            history.extend(visit_to_document(visit) for visit in changes.new_history)
            payload["history_json"] = history

        response = (
            self.client.table(self.table)
            .update(payload)
            .eq("id", session_id)
            .execute()
        )
        if not response.data:
            raise SessionNotFoundError(session_id)
        return _row_to_session(response.data[0])

    def delete_session(self, session_id: str) -> None:
        """Delete a customer row."""
        self.client.table(self.table).delete().eq("id", session_id).execute()


def _row_to_session(row: dict) -> Session:
    return Session(
        id=str(row["id"]),
        name=row["name"],
        status=row["status"],
        check_in_time=row["check_in_time"],
        photo=row.get("photo"),
        interval=interval_from_document(row["interval_json"]),
        history=tuple(
            visit_from_document(item) for item in row.get("history_json") or []
        ),
    )

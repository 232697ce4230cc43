"""JSON document mapping for sessions and customer records.

The camelCase field names here are the wire contract shared by the API, the
local cache and backup files.
"""

from checkin_tracker.domain.records import CustomerRecord
from checkin_tracker.domain.sessions import Interval, Session, VisitRecord


def interval_to_document(interval: Interval) -> dict[str, object]:
    return {
        "duration": interval.duration,
        "startTime": interval.start_time,
        "endTime": interval.end_time,
        "isNearingEnd": interval.is_nearing_end,
        "hasExtended": interval.has_extended,
        "extensionCount": interval.extension_count,
        "lastExtensionTime": interval.last_extension_time,
    }


def interval_from_document(data: dict) -> Interval:
    last_extension = data.get("lastExtensionTime")
    return Interval(
        duration=int(data["duration"]),
        start_time=int(data["startTime"]),
        end_time=int(data["endTime"]),
        is_nearing_end=bool(data.get("isNearingEnd", False)),
        has_extended=bool(data.get("hasExtended", False)),
        extension_count=int(data.get("extensionCount") or 0),
        last_extension_time=(
            int(last_extension) if last_extension is not None else None
        ),
    )


def visit_to_document(visit: VisitRecord) -> dict[str, object]:
    return {
        "checkIn": visit.check_in,
        "checkOut": visit.check_out,
        "duration": visit.duration,
        "wasExtended": visit.was_extended,
        "completedSession": visit.completed_session,
        "timeEnded": visit.time_ended,
        "extensionsUsed": visit.extensions_used,
    }


def visit_from_document(data: dict) -> VisitRecord:
    return VisitRecord(
        check_in=str(data.get("checkIn", "")),
        check_out=str(data.get("checkOut", "")),
        duration=int(data.get("duration") or 0),
        was_extended=bool(data.get("wasExtended", False)),
        completed_session=bool(data.get("completedSession", False)),
        time_ended=bool(data.get("timeEnded", False)),
        extensions_used=int(data.get("extensionsUsed") or 0),
    )


def session_to_document(session: Session) -> dict[str, object]:
    """Serialize a session to its JSON document."""
    return {
        "id": session.id,
        "name": session.name,
        "status": session.status,
        "checkInTime": session.check_in_time,
        "photo": session.photo,
        "interval": interval_to_document(session.interval),
        "history": [visit_to_document(visit) for visit in session.history],
    }


def session_from_document(data: dict) -> Session:
    """Build a session from its JSON document."""
    return Session(
        id=str(data["id"]),
        name=str(data["name"]),
        status=str(data["status"]),
        check_in_time=str(data["checkInTime"]),
        photo=data.get("photo") or None,
        interval=interval_from_document(data["interval"]),
        history=tuple(visit_from_document(item) for item in data.get("history") or []),
    )


def record_to_document(record: CustomerRecord) -> dict[str, object]:
    """Serialize a customer record to its JSON document."""
    return {
        "id": record.id,
        "name": record.name,
        "totalVisits": record.total_visits,
        "lastVisit": record.last_visit,
        "status": record.status,
        "history": [visit_to_document(visit) for visit in record.history],
    }


def record_from_document(data: dict) -> CustomerRecord:
    """Build a customer record from its JSON document."""
    return CustomerRecord(
        id=str(data["id"]),
        name=str(data["name"]),
        total_visits=int(data["totalVisits"]),
        last_visit=str(data["lastVisit"]),
        status=str(data.get("status", "active")),
        history=tuple(visit_from_document(item) for item in data.get("history") or []),
    )

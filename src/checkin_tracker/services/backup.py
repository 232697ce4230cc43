"""Backup export and import for customers and their visit records."""

import csv
import io
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic import ValidationError as PydanticValidationError

from checkin_tracker.domain.documents import (
    record_from_document,
    record_to_document,
    session_from_document,
    session_to_document,
)
from checkin_tracker.domain.errors import ImportRejectedError
from checkin_tracker.domain.records import CustomerRecord
from checkin_tracker.domain.sessions import STATUS_CHECKED_IN, Session
from checkin_tracker.services.clock import current_time_ms, format_timestamp
from checkin_tracker.services.records import CustomerRecordService
from checkin_tracker.services.sync import SessionSyncService

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
CSV_HEADERS = ["Name", "Check-in Time", "Status", "Duration", "End Time"]

Number = StrictInt | StrictFloat


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VisitDocument(_Document):
    check_in: str = Field(default="", alias="checkIn")
    check_out: str = Field(default="", alias="checkOut")
    duration: Number = 0
    was_extended: bool = Field(default=False, alias="wasExtended")
    completed_session: bool = Field(default=False, alias="completedSession")
    time_ended: bool = Field(default=False, alias="timeEnded")
    extensions_used: Number = Field(default=0, alias="extensionsUsed")


class IntervalDocument(_Document):
    duration: Number
    start_time: Number = Field(default=0, alias="startTime")
    end_time: Number = Field(default=0, alias="endTime")
    is_nearing_end: bool = Field(default=False, alias="isNearingEnd")
    has_extended: bool = Field(default=False, alias="hasExtended")
    extension_count: Number = Field(default=0, alias="extensionCount")
    last_extension_time: Number | None = Field(default=None, alias="lastExtensionTime")


class CustomerDocument(_Document):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    check_in_time: str = Field(min_length=1, alias="checkInTime")
    status: Literal["waiting", "checked-in", "checked-out"]
    photo: str | None = None
    interval: IntervalDocument
    history: list[VisitDocument] = Field(default_factory=list)


class RecordDocument(_Document):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    total_visits: Number = Field(alias="totalVisits")
    last_visit: str = Field(min_length=1, alias="lastVisit")
    status: Literal["active", "inactive"] = "active"
    history: list[VisitDocument]


class BackupDocument(_Document):
    """Schema of a backup file."""

    version: str = Field(min_length=1)
    export_date: str = Field(min_length=1, alias="exportDate")
    customers: list[CustomerDocument]
    records: list[RecordDocument]
    metadata: dict[str, object] = Field(default_factory=dict)


@dataclass(frozen=True)
class ImportSummary:
    """What an accepted import replaced."""

    customers: list[Session]
    records: list[CustomerRecord]


@dataclass
class BackupService:
    """Exports snapshots and validates imports before applying them."""

    sync: SessionSyncService
    records: CustomerRecordService
    clock: Callable[[], int] = current_time_ms

    def export_snapshot(self) -> dict[str, object]:
        """Return the full backup document for the current state."""
        customers = self.sync.list_sessions()
        records = self.records.list_records()
        now = self.clock()
        return {
            "customers": [session_to_document(session) for session in customers],
            "records": [record_to_document(record) for record in records],
            "exportDate": datetime.fromtimestamp(now / 1000, tz=UTC).isoformat(),
            "version": BACKUP_VERSION,
            "metadata": {
                "totalCustomers": len(customers),
                "totalRecords": len(records),
                "activeCustomers": sum(
                    1 for session in customers if session.status == STATUS_CHECKED_IN
                ),
            },
        }

    def export_csv(self) -> str:
        """Render the current customers as CSV."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for session in self.sync.list_sessions():
            writer.writerow(
                [
                    session.name,
                    session.check_in_time,
                    session.status,
                    f"{session.interval.duration} minutes",
                    format_timestamp(session.interval.end_time),
                ]
            )
        return buffer.getvalue()

    def import_snapshot(self, payload: str | bytes | dict) -> ImportSummary:
        """Validate a backup and replace the working set and cached records.

        Nothing is written unless every customer and record is valid. The
        remote store is left alone.
        """
        document = parse_backup(payload)
        customers = [
            session_from_document(item.model_dump(by_alias=True))
            for item in document.customers
        ]
        records = [
            record_from_document(item.model_dump(by_alias=True))
            for item in document.records
        ]
        self.sync.replace_working_set(customers)
        self.records.replace_all(records)
        logger.info(
            "Imported %s customers and %s records", len(customers), len(records)
        )
        return ImportSummary(customers=customers, records=records)


def parse_backup(payload: str | bytes | dict) -> BackupDocument:
    """Validate a backup payload, raising ImportRejectedError with diagnostics."""
    try:
        if isinstance(payload, dict):
            return BackupDocument.model_validate(payload)
        return BackupDocument.model_validate_json(payload)
    except PydanticValidationError as exc:
        details = [_describe(error) for error in exc.errors()]
        raise ImportRejectedError("Invalid backup file", details) from exc


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid")
    return f"{location}: {message}" if location else message

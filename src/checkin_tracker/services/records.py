"""Per-customer visit rollup kept in the local cache."""

import logging
from dataclasses import dataclass, replace

from checkin_tracker.domain.documents import record_from_document, record_to_document
from checkin_tracker.domain.records import (
    RECORD_ACTIVE,
    RECORD_INACTIVE,
    CustomerRecord,
)
from checkin_tracker.domain.sessions import Session, VisitRecord
from checkin_tracker.services.cache import CUSTOMER_RECORDS_KEY, LocalCache
from checkin_tracker.services.clock import format_timestamp

logger = logging.getLogger(__name__)


@dataclass
class CustomerRecordService:
    """Builds customer records incrementally as sessions end."""

    cache: LocalCache

    def list_records(self) -> list[CustomerRecord]:
        """Return every cached record, skipping unreadable entries."""
        raw = self.cache.get(CUSTOMER_RECORDS_KEY)
        if not isinstance(raw, list):
            return []
        records = []
        for item in raw:
            try:
                records.append(record_from_document(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed customer record: %r", item)
        return records

    def get(self, customer_id: str) -> CustomerRecord | None:
        for record in self.list_records():
            if record.id == customer_id:
                return record
        return None

    def record_visit(
        self, session: Session, visit: VisitRecord, now: int
    ) -> CustomerRecord:
        """Fold a finished visit into the customer's record."""
        records = self.list_records()
        last_visit = format_timestamp(now)
        for index, record in enumerate(records):
            if record.id == session.id:
                updated = replace(
                    record,
                    total_visits=record.total_visits + 1,
                    last_visit=last_visit,
                    status=RECORD_ACTIVE,
                    history=(visit, *record.history),
                )
                records[index] = updated
                break
        else:
            updated = CustomerRecord(
                id=session.id,
                name=session.name,
                total_visits=1,
                last_visit=last_visit,
                status=RECORD_ACTIVE,
                history=(visit,),
            )
            records.append(updated)
        self.replace_all(records)
        return updated

    def mark_inactive(self, customer_id: str) -> None:
        records = self.list_records()
        for index, record in enumerate(records):
            if record.id == customer_id:
                records[index] = replace(record, status=RECORD_INACTIVE)
                self.replace_all(records)
                return

    def replace_all(self, records: list[CustomerRecord]) -> None:
        self.cache.set(
            CUSTOMER_RECORDS_KEY, [record_to_document(record) for record in records]
        )

"""Domain models for the per-customer visit rollup."""

from dataclasses import dataclass

from checkin_tracker.domain.sessions import VisitRecord

RECORD_ACTIVE = "active"
RECORD_INACTIVE = "inactive"


@dataclass(frozen=True)
class CustomerRecord:
    """Denormalized visit history for one customer."""

    id: str
    name: str
    total_visits: int
    last_visit: str
    status: str
    history: tuple[VisitRecord, ...] = ()

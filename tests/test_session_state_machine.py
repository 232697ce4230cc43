"""Tests for the session state machine."""

from dataclasses import replace

import pytest

from checkin_tracker.domain.errors import SessionValidationError
from checkin_tracker.domain.sessions import STATUS_CHECKED_IN, STATUS_CHECKED_OUT
from checkin_tracker.services.clock import MS_PER_MINUTE, format_timestamp
from checkin_tracker.services.extensions import ExtensionDenied, ExtensionGranted
from checkin_tracker.services.sessions import SessionStateMachine

T0 = 1_700_000_000_000


@pytest.fixture
def machine() -> SessionStateMachine:
    return SessionStateMachine(warning_threshold_ms=5 * MS_PER_MINUTE)


def test_check_in_builds_fresh_session(machine: SessionStateMachine) -> None:
    transition = machine.check_in("c1", "  Ana  ", 30, T0)
    session = transition.session

    assert transition.event == "check_in"
    assert session.name == "Ana"
    assert session.status == STATUS_CHECKED_IN
    assert session.check_in_time == format_timestamp(T0)
    assert session.interval.start_time == T0
    assert session.interval.end_time == T0 + 30 * MS_PER_MINUTE
    assert session.interval.extension_count == 0
    assert session.history == ()


@pytest.mark.parametrize("name", ["", "   "])
def test_check_in_rejects_blank_name(machine: SessionStateMachine, name: str) -> None:
    with pytest.raises(SessionValidationError) as exc_info:
        machine.check_in("c1", name, 30, T0)

    assert exc_info.value.message == "Name is required"


@pytest.mark.parametrize("duration", [0, -30, True])
def test_check_in_rejects_bad_duration(
    machine: SessionStateMachine, duration: int
) -> None:
    with pytest.raises(SessionValidationError):
        machine.check_in("c1", "Ana", duration, T0)


def test_extend_then_check_out_records_visit(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session
    now = T0 + 1_795_000

    assert machine.read(session, now).is_nearing_end
    warned = machine.refresh_warning(session, now)
    assert warned is not None
    assert warned.event == "near_end"
    session = warned.session

    extension, outcome = machine.extend(session, now)
    assert isinstance(outcome, ExtensionGranted)
    assert extension is not None
    session = extension.session
    assert session.interval.end_time == T0 + 1_795_000 + 1_800_000
    assert session.interval.duration == 60
    assert session.interval.extension_count == 1
    assert session.interval.has_extended
    assert not session.interval.is_nearing_end
    assert extension.changes.interval == session.interval

    checkout = machine.check_out(session, now + 10 * MS_PER_MINUTE)
    assert checkout is not None
    assert checkout.session.status == STATUS_CHECKED_OUT
    assert checkout.session.interval.end_time == now + 10 * MS_PER_MINUTE
    visit = checkout.visit
    assert visit is not None
    assert visit.completed_session
    assert not visit.time_ended
    assert visit.was_extended
    assert visit.extensions_used == 1
    assert visit.duration == 60
    assert checkout.session.history == (visit,)
    assert checkout.changes.new_history == (visit,)


def test_extend_denied_leaves_no_transition(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session
    session = replace(
        session,
        interval=replace(
            session.interval, extension_count=3, last_extension_time=T0
        ),
    )

    transition, outcome = machine.extend(session, T0 + MS_PER_MINUTE)

    assert transition is None
    assert isinstance(outcome, ExtensionDenied)


def test_extend_requires_checked_in(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session
    checked_out = machine.check_out(session, T0)
    assert checked_out is not None

    with pytest.raises(SessionValidationError):
        machine.extend(checked_out.session, T0)


def test_check_out_is_idempotent(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session
    first = machine.check_out(session, T0 + MS_PER_MINUTE)
    assert first is not None

    assert machine.check_out(first.session, T0 + 2 * MS_PER_MINUTE) is None
    assert len(first.session.history) == 1


def test_expire_only_after_time_is_up(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session

    assert machine.expire(session, T0 + 30 * MS_PER_MINUTE - 1) is None

    expired = machine.expire(session, T0 + 30 * MS_PER_MINUTE)
    assert expired is not None
    assert expired.event == "expire"
    assert expired.session.status == STATUS_CHECKED_OUT
    assert not expired.session.interval.is_nearing_end
    assert expired.visit is not None
    assert expired.visit.time_ended
    assert not expired.visit.completed_session
    assert machine.expire(expired.session, T0 + 31 * MS_PER_MINUTE) is None


def test_refresh_warning_only_reports_changes(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session

    assert machine.refresh_warning(session, T0) is None
    warned = machine.refresh_warning(session, T0 + 26 * MS_PER_MINUTE)
    assert warned is not None
    assert machine.refresh_warning(warned.session, T0 + 27 * MS_PER_MINUTE) is None


def test_edit_time_rechecks_in_with_reset_bookkeeping(
    machine: SessionStateMachine,
) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session
    extension, _ = machine.extend(session, T0)
    assert extension is not None
    ended = machine.check_out(extension.session, T0 + MS_PER_MINUTE)
    assert ended is not None
    later = T0 + 2 * 60 * MS_PER_MINUTE

    edited = machine.edit_time(ended.session, 90, later)

    assert edited.session.status == STATUS_CHECKED_IN
    assert edited.session.check_in_time == format_timestamp(later)
    assert edited.session.interval.start_time == later
    assert edited.session.interval.end_time == later + 90 * MS_PER_MINUTE
    assert edited.session.interval.extension_count == 0
    assert not edited.session.interval.has_extended
    assert edited.session.history == ended.session.history
    assert edited.changes.status == STATUS_CHECKED_IN
    assert edited.visit is None


def test_rename_and_photo_changes(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session

    renamed = machine.rename(session, " Bea ")
    assert renamed.session.name == "Bea"
    assert renamed.changes.name == "Bea"

    with_photo = machine.set_photo(renamed.session, "https://photos.example/c1.jpg")
    assert with_photo.event == "set_photo"
    assert with_photo.changes.photo == "https://photos.example/c1.jpg"

    cleared = machine.set_photo(with_photo.session, None)
    assert cleared.event == "clear_photo"
    assert cleared.session.photo is None
    assert cleared.changes.clear_photo


def test_update_combines_rename_and_new_duration(
    machine: SessionStateMachine,
) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session
    later = T0 + 10 * MS_PER_MINUTE

    updated = machine.update(session, " Bea ", 60, later)

    assert updated.event == "update"
    assert updated.session.name == "Bea"
    assert updated.session.interval.end_time == later + 60 * MS_PER_MINUTE
    assert updated.changes.name == "Bea"
    assert updated.changes.interval == updated.session.interval
    assert updated.changes.check_in_time == format_timestamp(later)


def test_update_with_single_field(machine: SessionStateMachine) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session

    renamed = machine.update(session, "Bea", None, T0)
    retimed = machine.update(session, None, 90, T0)

    assert renamed.event == "rename"
    assert renamed.changes.interval is None
    assert retimed.event == "edit_time"
    assert retimed.changes.name is None


@pytest.mark.parametrize(
    ("name", "duration"), [("Bob", 0), ("", 60), (None, None)]
)
def test_update_validates_every_field(
    machine: SessionStateMachine, name: str | None, duration: int | None
) -> None:
    session = machine.check_in("c1", "Ana", 30, T0).session

    with pytest.raises(SessionValidationError):
        machine.update(session, name, duration, T0)

"""Tests for the extension policy."""

from checkin_tracker.domain.sessions import Interval
from checkin_tracker.services.clock import MS_PER_MINUTE
from checkin_tracker.services.extensions import (
    ExtensionDenied,
    ExtensionGranted,
    ExtensionPolicy,
    apply_extension,
)

NOW = 1_700_000_000_000


def _interval(**overrides: object) -> Interval:
    values: dict[str, object] = {
        "duration": 60,
        "start_time": NOW - 50 * MS_PER_MINUTE,
        "end_time": NOW + 10 * MS_PER_MINUTE,
    }
    values.update(overrides)
    return Interval(**values)  # type: ignore[arg-type]


def test_grant_moves_end_time_from_now() -> None:
    outcome = ExtensionPolicy().request_extension(_interval(), NOW)

    assert isinstance(outcome, ExtensionGranted)
    assert outcome.end_time == NOW + 30 * MS_PER_MINUTE
    assert outcome.duration == 90
    assert outcome.extension_count == 1
    assert outcome.last_extension_time == NOW


def test_three_extensions_then_cooldown_denial() -> None:
    policy = ExtensionPolicy()
    interval = _interval()
    now = NOW
    for expected_count in (1, 2, 3):
        outcome = policy.request_extension(interval, now)
        assert isinstance(outcome, ExtensionGranted)
        assert outcome.extension_count == expected_count
        interval = apply_extension(interval, outcome)
        now += MS_PER_MINUTE

    denied = policy.request_extension(interval, now)

    assert isinstance(denied, ExtensionDenied)
    assert denied.retry_after_ms == 59 * MS_PER_MINUTE
    assert denied.retry_after_minutes == 59
    assert denied.reason == "Please wait 59 minutes before extending again"


def test_denial_rounds_wait_up_to_whole_minutes() -> None:
    interval = _interval(extension_count=3, last_extension_time=NOW - 1_000)

    denied = ExtensionPolicy().request_extension(interval, NOW)

    assert isinstance(denied, ExtensionDenied)
    assert denied.retry_after_ms == 60 * MS_PER_MINUTE - 1_000
    assert denied.retry_after_minutes == 60


def test_grant_after_cooldown_restarts_counter() -> None:
    interval = _interval(
        extension_count=3, last_extension_time=NOW - 60 * MS_PER_MINUTE
    )

    outcome = ExtensionPolicy().request_extension(interval, NOW)

    assert isinstance(outcome, ExtensionGranted)
    assert outcome.extension_count == 1


def test_cap_without_last_extension_time_grants() -> None:
    outcome = ExtensionPolicy().request_extension(_interval(extension_count=3), NOW)

    assert isinstance(outcome, ExtensionGranted)
    assert outcome.extension_count == 1


def test_custom_policy_values() -> None:
    policy = ExtensionPolicy(
        max_extensions=1, extension_minutes=10, cooldown_ms=5 * MS_PER_MINUTE
    )
    first = policy.request_extension(_interval(), NOW)
    assert isinstance(first, ExtensionGranted)
    assert first.end_time == NOW + 10 * MS_PER_MINUTE

    extended = apply_extension(_interval(), first)
    second = policy.request_extension(extended, NOW + MS_PER_MINUTE)
    assert isinstance(second, ExtensionDenied)
    assert second.retry_after_minutes == 4


def test_apply_extension_sets_flags() -> None:
    interval = _interval(is_nearing_end=True)
    grant = ExtensionGranted(
        end_time=NOW + 30 * MS_PER_MINUTE,
        duration=90,
        extension_count=1,
        last_extension_time=NOW,
    )

    extended = apply_extension(interval, grant)

    assert extended.has_extended
    assert not extended.is_nearing_end
    assert extended.start_time == interval.start_time
    assert extended.end_time == grant.end_time

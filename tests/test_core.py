from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from barbershop.core import (
    MalformedTimeError,
    Slot,
    combine,
    format_minutes,
    generate_slots,
    has_conflict,
    overlaps,
    parse_hhmm,
    resolve_duration,
    shop_now,
    utcnow,
)


def test_parse_hhmm_accepts_strings_and_times() -> None:
    assert parse_hhmm("00:00") == 0
    assert parse_hhmm("10:45") == 645
    assert parse_hhmm("23:59") == 1439
    assert parse_hhmm(time(9, 30)) == 570


@pytest.mark.parametrize("value", ["9:00", "24:00", "10:60", "1000", "", None, "ab:cd"])
def test_parse_hhmm_rejects_malformed_values(value) -> None:
    with pytest.raises(MalformedTimeError):
        parse_hhmm(value)


def test_format_minutes_pads_hours_and_minutes() -> None:
    assert format_minutes(545) == "09:05"


def test_resolve_duration_defaults_to_45_minutes() -> None:
    assert resolve_duration(None) == 45
    assert resolve_duration(0) == 45
    assert resolve_duration(60) == 60


def test_half_open_intervals_touching_do_not_overlap() -> None:
    assert overlaps(600, 645, 645, 690) is False
    assert overlaps(645, 690, 600, 645) is False


def test_containment_counts_as_overlap() -> None:
    assert overlaps(600, 720, 630, 660) is True
    assert overlaps(630, 660, 600, 720) is True


@pytest.mark.parametrize(
    ("candidate", "expected"),
    [
        ("10:44", True),
        ("10:45", False),
        ("09:00", False),
        ("09:30", True),
    ],
)
def test_conflict_against_existing_ten_oclock_booking(candidate: str, expected: bool) -> None:
    existing = [Slot("10:00", None)]

    assert has_conflict(Slot(candidate, 45), existing) is expected


def test_has_conflict_uses_each_slot_duration() -> None:
    existing = [Slot("10:00", 90)]

    assert has_conflict(Slot("11:15", 30), existing) is True
    assert has_conflict(Slot("11:30", 30), existing) is False


def test_has_conflict_with_no_existing_appointments() -> None:
    assert has_conflict(Slot("10:00"), []) is False


def test_has_conflict_propagates_malformed_time() -> None:
    with pytest.raises(MalformedTimeError):
        has_conflict(Slot("10:00"), [Slot("10h00")])


def test_generate_slots_stops_before_close() -> None:
    assert generate_slots("09:00", "11:00", 45) == ["09:00", "09:45", "10:30"]
    assert generate_slots(time(9, 0), time(10, 0), 30) == ["09:00", "09:30"]


def test_generate_slots_rejects_non_positive_step() -> None:
    with pytest.raises(ValueError):
        generate_slots("09:00", "10:00", 0)


def test_combine_builds_a_naive_datetime() -> None:
    assert combine(date(2025, 10, 1), "14:30") == datetime(2025, 10, 1, 14, 30)


def test_utcnow_is_timezone_aware() -> None:
    assert utcnow().utcoffset() == timedelta(0)


def test_shop_now_is_naive_wall_clock_for_the_shop_zone() -> None:
    before = datetime.now(ZoneInfo("America/Argentina/Buenos_Aires")).replace(tzinfo=None)
    now = shop_now("America/Argentina/Buenos_Aires")

    assert now.tzinfo is None
    assert abs(now - before) < timedelta(seconds=5)
    assert abs(shop_now("UTC") - datetime.now(timezone.utc).replace(tzinfo=None)) < timedelta(seconds=5)

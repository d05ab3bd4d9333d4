from datetime import datetime

import pytest
import pytz

from tzglobe.models import TimeZoneFeatureCollection
from tzglobe.offset_matcher import (
    WORLD_OFFSETS,
    current_utc_offset,
    distinct_offsets,
    find_timezones_for_offset,
    format_utc_offset,
    offset_matches,
    round_to_quarter_hour,
    utc_instant,
)


@pytest.mark.parametrize("hours, expected", [
    (5.75, 5.75),
    (5.8, 5.75),
    (5.875, 6.0),
    (-3.5, -3.5),
    (-3.6, -3.5),
    (0.1, 0.0),
    (12.7, 12.75),
])
def test_round_to_quarter_hour(hours, expected):
    assert round_to_quarter_hour(hours) == expected


@pytest.mark.parametrize("hours", [-12.3, -9.5, -0.01, 0, 3.14159, 5.75, 8.8, 13.99, 1e6])
def test_rounding_is_idempotent(hours):
    once = round_to_quarter_hour(hours)
    assert round_to_quarter_hour(once) == once


def test_world_offsets_are_quarter_hours():
    assert all(round_to_quarter_hour(o) == o for o in WORLD_OFFSETS)
    assert WORLD_OFFSETS == sorted(WORLD_OFFSETS)


def test_offset_matches_tolerance():
    assert offset_matches(5.75, 5.75)
    assert offset_matches(5.6, 5.5)
    assert offset_matches(5.5, 5.625)
    assert not offset_matches(5.5, 5.75)
    assert not offset_matches(-4, -5)


def test_current_utc_offset_is_dst_aware(winter_now, summer_now):
    assert current_utc_offset("America/New_York", winter_now) == -5
    assert current_utc_offset("America/New_York", summer_now) == -4
    assert current_utc_offset("Asia/Kathmandu", winter_now) == 5.75
    assert current_utc_offset("Asia/Kolkata", summer_now) == 5.5


def test_current_utc_offset_unknown_zone(winter_now):
    with pytest.raises(pytz.UnknownTimeZoneError):
        current_utc_offset("Not/AZone", winter_now)


def test_utc_instant_handles_naive_and_aware():
    naive = datetime(2024, 1, 15, 12, 0)
    assert utc_instant(naive) == pytz.utc.localize(naive)

    tehran = pytz.timezone("Asia/Tehran").localize(datetime(2024, 1, 15, 15, 30))
    assert utc_instant(tehran) == pytz.utc.localize(naive)

    assert utc_instant(None).tzinfo is not None


def test_find_timezones_for_offset(world_collection, winter_now):
    assert find_timezones_for_offset(world_collection, 8, winter_now) == {"Asia/Shanghai", "Asia/Singapore"}
    assert find_timezones_for_offset(world_collection, 5.75, winter_now) == {"Asia/Kathmandu"}
    assert find_timezones_for_offset(world_collection, 5.5, winter_now) == {"Asia/Kolkata"}


def test_find_timezones_for_offset_follows_dst(world_collection, winter_now, summer_now):
    assert find_timezones_for_offset(world_collection, -5, winter_now) == {"America/New_York"}
    assert find_timezones_for_offset(world_collection, -5, summer_now) == set()
    assert find_timezones_for_offset(world_collection, -4, summer_now) == {"America/New_York"}


@pytest.mark.parametrize("offset", WORLD_OFFSETS)
def test_find_timezones_never_returns_fixed_offset_zones(world_collection, winter_now, offset):
    matches = find_timezones_for_offset(world_collection, offset, winter_now)
    assert not any(tzid.startswith("Etc/") for tzid in matches)


def test_find_timezones_for_offset_empty_collection(winter_now):
    assert find_timezones_for_offset(TimeZoneFeatureCollection.empty(), 0, winter_now) == set()
    assert find_timezones_for_offset(None, 0, winter_now) == set()


@pytest.mark.parametrize("hours, expected", [
    (0, "UTC+0"),
    (8, "UTC+8"),
    (5.75, "UTC+5:45"),
    (-9.5, "UTC-9:30"),
    (-5, "UTC-5"),
    (12.75, "UTC+12:45"),
])
def test_format_utc_offset(hours, expected):
    assert format_utc_offset(hours) == expected


def test_distinct_offsets(winter_now):
    tzids = ["Asia/Kathmandu", "Asia/Kolkata", "Asia/Calcutta", "Etc/GMT-8", "Not/AZone", ""]
    assert distinct_offsets(tzids, winter_now) == {5.75, 5.5}

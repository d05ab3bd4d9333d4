# tzglobe/offset_matcher.py
"""UTC offset matching with quarter-hour precision.

Offsets are computed live from the IANA database (via pytz), so results are
DST-aware: the same target offset can match different zones before and after
a transition. Every function accepts an explicit `now` for that reason.
"""

import logging
import math
from datetime import datetime
from typing import Iterable, Optional, Set

import pytz

from tzglobe.models import TimeZoneFeatureCollection

# Just over 1/8 h: a rounded offset exactly 0.125 away still matches,
# two neighbouring quarter-hour buckets never both do.
MATCH_TOL = 0.126

EXCLUDED_PREFIX = "Etc/"

# Offsets offered by the globe's offset slider
WORLD_OFFSETS = [
    -12, -11, -10, -9.5, -9, -8, -7, -6, -5, -4, -3.5, -3, -2, -1,
    0, 1, 2, 3, 3.5, 4, 4.5, 5, 5.5, 5.75, 6, 6.5, 7, 8, 8.75,
    9, 9.5, 10, 10.5, 11, 12, 12.75, 13, 14,
]


def round_to_quarter_hour(hours: float) -> float:
    """Round to the nearest 0.25 h (halves go up, e.g. 5.875 -> 6.0)."""
    return math.floor(hours * 4 + 0.5) / 4


def is_fixed_offset_zone(tzid: str) -> bool:
    """Synthetic Etc/* zones are not real regions."""
    return tzid.startswith(EXCLUDED_PREFIX)


def utc_instant(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(pytz.utc)
    if now.tzinfo is None:
        return pytz.utc.localize(now)
    return now.astimezone(pytz.utc)


def current_utc_offset(tzid: str, now: Optional[datetime] = None) -> float:
    """Offset of `tzid` from UTC in hours at instant `now`.

    Compares the wall clock rendered in UTC with the wall clock rendered in the
    zone, like a calendar widget would.

    Raises:
        pytz.UnknownTimeZoneError: if tzid is not in the database
    """
    tz = pytz.timezone(tzid)
    instant = utc_instant(now)

    utc_wall = instant.replace(tzinfo=None)
    local_wall = instant.astimezone(tz).replace(tzinfo=None)

    return (local_wall - utc_wall).total_seconds() / 3600


def offset_matches(offset: float, target: float) -> bool:
    return abs(round_to_quarter_hour(offset) - target) < MATCH_TOL


def find_timezones_for_offset(
    collection: TimeZoneFeatureCollection,
    target_offset_hours: float,
    now: Optional[datetime] = None
) -> Set[str]:
    """Get all tzids whose current offset rounds to the target offset.

    Args:
        collection: Loaded timezone features
        target_offset_hours: e.g. 8 for UTC+8, -5 for UTC-5, 5.75 for UTC+5:45
        now: Instant to evaluate offsets at (default: current time)

    Returns:
        Set of matching tzids (never contains Etc/* zones)
    """
    if collection is None or collection.is_empty():
        logging.warning("[TZ OFFSET] No timezone data available")
        return set()

    instant = utc_instant(now)
    offsets_by_tzid = {}
    matches = set()

    for tzid in collection.tzids:
        if not tzid or is_fixed_offset_zone(tzid):
            continue

        if tzid not in offsets_by_tzid:
            try:
                offsets_by_tzid[tzid] = current_utc_offset(tzid, instant)
            except pytz.UnknownTimeZoneError:
                logging.warning(f"[TZ OFFSET] Could not process timezone: {tzid}")
                offsets_by_tzid[tzid] = None

        offset = offsets_by_tzid[tzid]
        if offset is not None and offset_matches(offset, target_offset_hours):
            matches.add(tzid)

    logging.info(f"[TZ OFFSET] Found {len(matches)} timezones for {format_utc_offset(target_offset_hours)}")
    return matches


def format_utc_offset(hours: float) -> str:
    """Format an offset as UTC±H[:MM], e.g. UTC+0, UTC+5:45, UTC-9:30."""
    sign = "+" if hours >= 0 else "-"
    total_minutes = int(round(abs(hours) * 60))
    whole, minutes = divmod(total_minutes, 60)

    if minutes > 0:
        return f"UTC{sign}{whole}:{minutes:02d}"
    return f"UTC{sign}{whole}"


def distinct_offsets(
    tzids: Iterable[str],
    now: Optional[datetime] = None
) -> Set[float]:
    """Quarter-hour rounded offsets currently in use by the given zones."""
    instant = utc_instant(now)
    offsets = set()
    for tzid in tzids:
        if not tzid or is_fixed_offset_zone(tzid):
            continue
        try:
            offsets.add(round_to_quarter_hour(current_utc_offset(tzid, instant)))
        except pytz.UnknownTimeZoneError:
            continue
    return offsets

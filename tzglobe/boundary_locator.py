# tzglobe/boundary_locator.py
"""Point → timezone lookup over the loaded polygons.

Features are scanned in collection order and the first containing polygon
wins. Points outside every polygon resolve to the oceanic UTC sentinel.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytz

from tzglobe.geometry import normalize_longitude, point_in_polygon
from tzglobe.models import TimeZoneFeature, TimeZoneFeatureCollection
from tzglobe.offset_matcher import current_utc_offset, format_utc_offset, utc_instant

OCEAN_TZID = "Etc/UTC"
OCEAN_DISPLAY_NAME = "UTC+0 (Ocean/International Waters)"


@dataclass
class TimezoneInfo:
    """Lookup result for a single point."""
    tzid: str
    utc_offset: float
    local_time: str
    display_name: str


def is_oceanic(tzid: Optional[str]) -> bool:
    """True for the sentinel and any other Etc/* zone."""
    return not tzid or tzid == OCEAN_TZID or tzid.startswith("Etc/")


def feature_contains(feature: TimeZoneFeature, lat: float, lon: float) -> bool:
    """Polygon: point_in_polygon. MultiPolygon: any member polygon contains the point."""
    for rings in feature.geometry.unwrapped_ring_sets:
        if point_in_polygon(lat, lon, rings):
            return True
    return False


def find_feature_at(
    collection: TimeZoneFeatureCollection,
    lat: float,
    lon: float
) -> Optional[TimeZoneFeature]:
    if collection is None:
        return None

    if not (math.isfinite(lat) and math.isfinite(lon)):
        logging.warning(f"Ignoring lookup at non-finite coordinates ({lat}, {lon})")
        return None

    normalized_lon = normalize_longitude(lon)
    for feature in collection.features:
        if feature_contains(feature, lat, normalized_lon):
            return feature
    return None


def find_timezone_at(collection: TimeZoneFeatureCollection, lat: float, lon: float) -> str:
    """Find the tzid at a point.

    Args:
        collection: Loaded timezone features
        lat: Latitude in degrees
        lon: Longitude in degrees (any range, normalized to [-180, 180))

    Returns:
        tzid of the first containing feature, or OCEAN_TZID
    """
    feature = find_feature_at(collection, lat, lon)
    if feature is None or not feature.tzid:
        return OCEAN_TZID
    return feature.tzid


def describe_timezone_at(
    collection: TimeZoneFeatureCollection,
    lat: float,
    lon: float,
    now: Optional[datetime] = None
) -> TimezoneInfo:
    """Find the timezone at a point plus its current offset and local time.

    Returns:
        TimezoneInfo; display_name looks like "America/New York (UTC-4)"
    """
    instant = utc_instant(now)
    tzid = find_timezone_at(collection, lat, lon)

    if tzid == OCEAN_TZID:
        return TimezoneInfo(
            tzid=OCEAN_TZID,
            utc_offset=0.0,
            local_time=instant.strftime("%H:%M:%S"),
            display_name=OCEAN_DISPLAY_NAME,
        )

    readable = tzid.replace("_", " ")
    try:
        offset = current_utc_offset(tzid, instant)
        local_time = instant.astimezone(pytz.timezone(tzid)).strftime("%H:%M:%S")
    except pytz.UnknownTimeZoneError:
        logging.error(f"Error calculating time zone info for {tzid}")
        return TimezoneInfo(tzid=tzid, utc_offset=0.0, local_time="N/A", display_name=readable)

    return TimezoneInfo(
        tzid=tzid,
        utc_offset=offset,
        local_time=local_time,
        display_name=f"{readable} ({format_utc_offset(offset)})",
    )

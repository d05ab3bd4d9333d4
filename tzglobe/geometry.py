# tzglobe/geometry.py
"""Geometry primitives for timezone boundaries.

This module provides the numeric building blocks shared by lookup and rendering:
1. Longitude unwrapping (removes ±360° jumps at the antimeridian)
2. Closing-vertex de-duplication
3. Ray-casting point-in-ring / point-in-polygon tests (holes supported)
4. Lat/lon <-> 3D sphere surface mapping

Rings are sequences of [lon, lat] pairs in degrees, as in GeoJSON.
"""

import math
from typing import List, Optional, Sequence, Tuple

Ring = List[List[float]]
Vec3 = Tuple[float, float, float]

EPS = 1e-9


def normalize_longitude(lon: float) -> float:
    """Wrap a longitude into [-180, 180). Non-finite values are returned as-is."""
    if not math.isfinite(lon):
        return lon

    wrapped = (lon + 180) % 360 - 180
    # float rounding can land exactly on the open end
    if wrapped >= 180:
        wrapped -= 360
    return wrapped


def unwrap_longitudes(ring: Sequence[Sequence[float]]) -> Ring:
    """Unwrap longitudes so each step is within ±180° of the previous vertex.

    The first vertex is kept as-is; every following longitude is shifted by
    the multiple of 360° that brings it closest to the previous (already
    shifted) longitude. Non-finite longitudes are left alone. The input ring
    is not modified.

    Args:
        ring: Sequence of [lon, lat] pairs

    Returns:
        New ring with continuous longitudes (may leave [-180, 180])
    """
    if len(ring) == 0:
        return []

    unwrapped = []
    prev_lon = ring[0][0]

    for point in ring:
        lon, lat = point[0], point[1]
        adjusted = lon
        if math.isfinite(lon) and math.isfinite(prev_lon):
            adjusted = lon - 360 * round((lon - prev_lon) / 360)
        unwrapped.append([adjusted, lat])
        prev_lon = adjusted

    return unwrapped


def drop_closing_duplicate(ring: Sequence[Sequence[float]], eps: float = EPS) -> Ring:
    """Drop the last vertex if it repeats the first one (within eps on both axes).

    Rings with fewer than 2 vertices pass through unchanged.
    """
    points = [list(p) for p in ring]
    if len(points) < 2:
        return points

    first, last = points[0], points[-1]
    if abs(first[0] - last[0]) < eps and abs(first[1] - last[1]) < eps:
        return points[:-1]

    return points


def clean_ring(ring: Sequence[Sequence[float]]) -> Ring:
    """Unwrap then de-duplicate; the form every rendered ring goes through."""
    return drop_closing_duplicate(unwrap_longitudes(ring))


def mean_longitude(ring: Sequence[Sequence[float]]) -> float:
    return sum(p[0] for p in ring) / len(ring) if ring else 0.0


def align_ring(ring: Sequence[Sequence[float]], reference_lon: float) -> Ring:
    """Shift a whole ring by a multiple of 360° so its first vertex is within
    180° of reference_lon.

    Holes are unwrapped from their own first vertex, so a hole across the
    antimeridian from its (unwrapped) shell has to be moved into the shell's
    longitude frame before both can form one polygon.
    """
    points = [list(p) for p in ring]
    if not points or not math.isfinite(points[0][0]) or not math.isfinite(reference_lon):
        return points

    shift = 360 * round((points[0][0] - reference_lon) / 360)
    if shift == 0:
        return points
    return [[lon - shift, lat] for lon, lat, *_ in points]


def align_holes(outer: Sequence[Sequence[float]], holes: Sequence[Sequence[Sequence[float]]]) -> List[Ring]:
    """Move every hole into the longitude frame of the outer ring."""
    reference = mean_longitude(outer)
    return [align_ring(hole, reference) for hole in holes]


def lat_lon_to_sphere_point(lat: float, lon: float, radius: float) -> Vec3:
    """Convert latitude/longitude to a point on a sphere of the given radius.

    phi is measured from the north pole and theta is offset by 180°, which is
    the mapping the globe's base texture uses. Changing either convention
    rotates every overlay relative to the surface.

    Returns:
        (x, y, z) with y pointing at the north pole
    """
    phi = (90 - lat) * math.pi / 180
    theta = (lon + 180) * math.pi / 180
    return (
        -(radius * math.sin(phi) * math.cos(theta)),
        radius * math.cos(phi),
        radius * math.sin(phi) * math.sin(theta),
    )


def sphere_point_to_lat_lon(x: float, y: float, z: float) -> Optional[Tuple[float, float]]:
    """Inverse of lat_lon_to_sphere_point for a point on (or near) the globe.

    Used to turn a raycast intersection into geographic coordinates.

    Returns:
        (lat, lon) with lon in [-180, 180), or None for the origin
    """
    r = math.sqrt(x * x + y * y + z * z)
    if r == 0:
        return None

    lat = math.degrees(math.asin(max(-1.0, min(1.0, y / r))))
    lon = math.degrees(math.atan2(z, -x)) - 180
    return (lat, normalize_longitude(lon))


def _ring_parity(lat: float, lon: float, ring: Sequence[Sequence[float]]) -> bool:
    inside = False
    n = len(ring)
    j = n - 1

    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]

        if (yi > lat) != (yj > lat):
            if lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
                inside = not inside
        j = i

    return inside


def point_in_ring(lat: float, lon: float, ring: Sequence[Sequence[float]]) -> bool:
    """Ray-casting parity test in planar (lon, lat) space.

    A ring whose longitudes leave [-180, 180] (an unwrapped antimeridian ring)
    is also tested with the query longitude shifted by ±360°, so points on
    either side of the antimeridian are found.
    """
    if len(ring) < 3:
        return False

    if _ring_parity(lat, lon, ring):
        return True

    lons = [p[0] for p in ring]
    if max(lons) > 180 and _ring_parity(lat, lon + 360, ring):
        return True
    if min(lons) < -180 and _ring_parity(lat, lon - 360, ring):
        return True

    return False


def point_in_polygon(lat: float, lon: float, rings: Sequence[Sequence[Sequence[float]]]) -> bool:
    """True if the point is inside the outer ring and inside none of the holes."""
    if not rings:
        return False

    if not point_in_ring(lat, lon, rings[0]):
        return False

    for hole in rings[1:]:
        if point_in_ring(lat, lon, hole):
            return False

    return True

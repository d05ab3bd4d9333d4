# tzglobe/service.py
"""Lookup API bound to one feature store, renderer and globe.

Every async method makes sure the dataset is loaded first, so callers never
see a half-initialized store. Rendering calls are no-ops without a globe.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Set

from tzglobe.boundary_locator import (
    TimezoneInfo,
    describe_timezone_at,
    find_timezone_at,
    is_oceanic,
)
from tzglobe.feature_store import FeatureStore, feature_store
from tzglobe.geometry import Vec3, sphere_point_to_lat_lon
from tzglobe.models import TimeZoneFeatureCollection
from tzglobe.offset_matcher import find_timezones_for_offset
from tzglobe.scene import MeshSceneBackend
from tzglobe.sphere_renderer import SphereRenderer


class TimezoneService:
    def __init__(
        self,
        store: Optional[FeatureStore] = None,
        renderer: Optional[SphereRenderer] = None,
        globe=None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store or feature_store
        self.renderer = renderer or SphereRenderer(MeshSceneBackend())
        self.globe = globe
        self.clock = clock
        self._highlighted: Optional[str] = None

    def _now(self) -> Optional[datetime]:
        return self.clock() if self.clock else None

    async def ensure_loaded(self) -> TimeZoneFeatureCollection:
        return await self.store.ensure_loaded()

    async def find_timezone_at(self, lat: float, lon: float) -> str:
        collection = await self.ensure_loaded()
        return find_timezone_at(collection, lat, lon)

    async def describe_timezone_at(self, lat: float, lon: float) -> TimezoneInfo:
        collection = await self.ensure_loaded()
        return describe_timezone_at(collection, lat, lon, self._now())

    async def find_timezones_for_offset(self, offset_hours: float) -> Set[str]:
        collection = await self.ensure_loaded()
        return find_timezones_for_offset(collection, offset_hours, self._now())

    async def render_feature(self, tzid: str) -> int:
        collection = await self.ensure_loaded()
        return self.renderer.render_feature(collection, self.globe, tzid)

    async def render_offset(self, offset_hours: float) -> List[str]:
        collection = await self.ensure_loaded()
        return self.renderer.render_offset(collection, self.globe, offset_hours, self._now())

    def clear_all(self) -> int:
        self._highlighted = None
        return self.renderer.clear_all(self.globe)

    async def highlight_at_point(self, point: Vec3) -> Optional[str]:
        """Highlight the timezone under a point on the globe surface.

        Oceanic points and the already highlighted zone leave the overlay as
        it is.

        Args:
            point: (x, y, z) intersection in globe-local coordinates

        Returns:
            The highlighted tzid, or None if nothing new was highlighted
        """
        lat_lon = sphere_point_to_lat_lon(*point)
        if lat_lon is None:
            return None

        lat, lon = lat_lon
        tzid = await self.find_timezone_at(lat, lon)
        if is_oceanic(tzid) or tzid == self._highlighted:
            return None

        self.renderer.clear_all(self.globe)
        drawn = await self.render_feature(tzid)
        self._highlighted = tzid
        logging.debug(f"[TZ] Highlighted {tzid} at ({lat:.3f}, {lon:.3f}), {drawn} polygon(s)")
        return tzid

    @property
    def highlighted(self) -> Optional[str]:
        return self._highlighted

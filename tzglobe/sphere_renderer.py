# tzglobe/sphere_renderer.py
"""Timezone boundary rendering on a 3D globe.

For every ring-set of a timezone feature the renderer emits:
- a magenta LineLoop border over the outer ring (paint order 2)
- a translucent fill mesh, holes excluded (paint order 1)

Everything goes into one overlay group parented to the globe, so it rotates
and scales with it. Rings are unwrapped across the antimeridian and stripped
of their closing duplicate, and holes are shifted into their shell's
longitude frame. Ring-sets with fewer than 3 usable outer vertices are
skipped.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

import config
from tzglobe.geometry import align_holes, clean_ring, lat_lon_to_sphere_point
from tzglobe.models import TimeZoneFeatureCollection
from tzglobe.offset_matcher import find_timezones_for_offset, format_utc_offset
from tzglobe.scene import BorderStyle, FillStyle, SceneBackend

OVERLAY_GROUP_NAME = "tzOverlayGroup"
OVERLAY_RENDER_ORDER = 10

# Slightly above the globe surface to avoid z-fighting with the base sphere
OVERLAY_RADIUS_FACTOR = 1.0005


class SphereRenderer:
    """Builds border/fill geometry for timezone features on a globe."""

    def __init__(
        self,
        backend: Optional[SceneBackend] = None,
        fill_enabled: Optional[bool] = None,
        border_style: BorderStyle = BorderStyle(),
        fill_style: FillStyle = FillStyle()
    ):
        self.backend = backend
        self.fill_enabled = config.TZ_FILL_ENABLED if fill_enabled is None else fill_enabled
        self.border_style = border_style
        self.fill_style = fill_style

    def ensure_overlay_group(self, globe):
        """Get (or create and attach) the overlay group under the globe.

        Returns:
            The group, or None if the scene is not ready
        """
        if self.backend is None or globe is None:
            return None

        group = globe.get_object_by_name(OVERLAY_GROUP_NAME)
        if group is None:
            group = self.backend.create_group(OVERLAY_GROUP_NAME, render_order=OVERLAY_RENDER_ORDER)
            globe.add(group)
            logging.info(f"[TZ] Created overlay group with render order {OVERLAY_RENDER_ORDER}")
        return group

    @staticmethod
    def overlay_radius(globe) -> float:
        return globe.bounding_radius() * OVERLAY_RADIUS_FACTOR

    def render_feature(
        self,
        collection: TimeZoneFeatureCollection,
        globe,
        tzid: str
    ) -> int:
        """Render every polygon of one timezone.

        Args:
            collection: Loaded timezone features
            globe: Globe surface to attach the overlay to
            tzid: Timezone to draw

        Returns:
            Number of ring-sets drawn (0 if nothing could be drawn)
        """
        if collection is None:
            return 0

        group = self.ensure_overlay_group(globe)
        if group is None:
            return 0

        feature = collection.find(tzid)
        if feature is None:
            logging.warning(f"[TZ] Feature not found for tzid: {tzid}")
            return 0

        radius = self.overlay_radius(globe)
        drawn = 0
        for rings in feature.geometry.ring_sets():
            if self._render_ring_set(rings, group, radius, tzid):
                drawn += 1

        logging.debug(f"[TZ] Rendered timezone {tzid}: {drawn} polygon(s)")
        return drawn

    def _render_ring_set(self, rings: Sequence, group, radius: float, tzid: str) -> bool:
        outer = clean_ring(rings[0])
        if len(outer) < 3:
            logging.debug(f"[TZ] Skipping degenerate polygon for {tzid} ({len(outer)} points)")
            return False

        holes = []
        for hole in rings[1:]:
            processed = clean_ring(hole)
            if len(processed) >= 3:
                holes.append(processed)
        holes = align_holes(outer, holes)

        shape = self.backend.create_shape(outer, holes)

        border_points = [lat_lon_to_sphere_point(lat, lon, radius) for lon, lat in outer]
        border = self.backend.create_line_loop(border_points, self.border_style)
        group.add(border)

        if self.fill_enabled:
            self._render_fill(shape, group, radius, tzid, len(holes))

        return True

    def _render_fill(self, shape, group, radius: float, tzid: str, hole_count: int):
        # Triangulate in flat (lon, lat) space, then lift each vertex onto the sphere
        try:
            vertices, faces = self.backend.triangulate(shape)
            positions = [lat_lon_to_sphere_point(lat, lon, radius) for lon, lat in vertices]
            fill = self.backend.create_mesh(positions, faces, self.fill_style)
        except Exception as e:
            logging.error(f"[TZ] Failed to create fill mesh for {tzid}: {e}")
            return

        group.add(fill)
        logging.debug(f"[TZ] Fill mesh for {tzid}: {len(faces)} triangles, {hole_count} holes")

    def render_offset(
        self,
        collection: TimeZoneFeatureCollection,
        globe,
        offset_hours: float,
        now: Optional[datetime] = None
    ) -> List[str]:
        """Render every timezone currently at the given UTC offset.

        Returns:
            Sorted list of tzids that were drawn
        """
        if collection is None or self.ensure_overlay_group(globe) is None:
            return []

        rendered = []
        for tzid in sorted(find_timezones_for_offset(collection, offset_hours, now)):
            if self.render_feature(collection, globe, tzid) > 0:
                rendered.append(tzid)

        logging.info(f"[TZ] Rendered {len(rendered)} timezones for {format_utc_offset(offset_hours)}")
        return rendered

    def clear_all(self, globe) -> int:
        """Dispose and detach every overlay child; the empty group stays attached.

        Returns:
            Number of children removed
        """
        if globe is None:
            return 0

        group = globe.get_object_by_name(OVERLAY_GROUP_NAME)
        if group is None:
            return 0

        removed = 0
        while group.children:
            child = group.children[0]
            child.dispose()
            group.remove(child)
            removed += 1
        return removed

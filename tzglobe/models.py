# tzglobe/models.py
"""Timezone GeoJSON data model.

Features are read once from a GeoJSON FeatureCollection and never mutated.
The empty collection doubles as the "data unavailable" sentinel.
"""

import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, List, Optional, Tuple

from tzglobe.geometry import Ring, align_holes, unwrap_longitudes

POLYGON = "Polygon"
MULTI_POLYGON = "MultiPolygon"


class InvalidGeoJsonError(ValueError):
    """Raised when an uploaded payload is not a timezone FeatureCollection."""


def is_valid_feature_collection(data: Any) -> bool:
    """Structural check: a mapping tagged FeatureCollection with a features list."""
    if not data or not isinstance(data, dict):
        return False

    if data.get("type") != "FeatureCollection":
        return False

    if not isinstance(data.get("features"), list):
        return False

    return True


def is_usable_feature_collection(data: Any) -> bool:
    """Valid and non-empty; the predicate every cache tier must pass."""
    return is_valid_feature_collection(data) and len(data["features"]) > 0


@dataclass(frozen=True)
class TimeZoneGeometry:
    """Polygon (list of rings) or MultiPolygon (list of ring lists)."""
    type: str
    coordinates: List[Any] = field(default_factory=list)

    def ring_sets(self) -> List[List[List[List[float]]]]:
        """Ring-sets in drawing order: one for a Polygon, one per member otherwise."""
        if self.type == POLYGON:
            return [self.coordinates] if self.coordinates else []
        if self.type == MULTI_POLYGON:
            return [polygon for polygon in self.coordinates if polygon]
        return []

    @cached_property
    def unwrapped_ring_sets(self) -> List[List[Ring]]:
        """Ring-sets with every ring unwrapped and holes moved into the frame
        of their outer ring. Computed once per geometry."""
        prepared = []
        for rings in self.ring_sets():
            outer = unwrap_longitudes(rings[0])
            holes = [unwrap_longitudes(hole) for hole in rings[1:]]
            prepared.append([outer] + align_holes(outer, holes))
        return prepared


@dataclass(frozen=True)
class TimeZoneFeature:
    tzid: str
    geometry: TimeZoneGeometry

    @classmethod
    def from_geojson(cls, feature: Dict) -> "TimeZoneFeature":
        properties = feature.get("properties")
        geometry = feature.get("geometry")
        if not isinstance(properties, dict):
            properties = {}
        if not isinstance(geometry, dict):
            geometry = {}

        coordinates = geometry.get("coordinates")
        return cls(
            tzid=str(properties.get("tzid") or ""),
            geometry=TimeZoneGeometry(
                type=str(geometry.get("type") or ""),
                coordinates=coordinates if isinstance(coordinates, list) else [],
            ),
        )

    def to_geojson(self) -> Dict:
        return {
            "type": "Feature",
            "properties": {"tzid": self.tzid},
            "geometry": {
                "type": self.geometry.type,
                "coordinates": self.geometry.coordinates,
            },
        }


@dataclass(frozen=True)
class TimeZoneFeatureCollection:
    features: Tuple[TimeZoneFeature, ...] = ()

    @classmethod
    def empty(cls) -> "TimeZoneFeatureCollection":
        return cls(features=())

    @classmethod
    def from_geojson(cls, data: Dict) -> "TimeZoneFeatureCollection":
        """Build a collection from a parsed FeatureCollection mapping.

        Args:
            data: Parsed GeoJSON (must pass is_valid_feature_collection)

        Returns:
            TimeZoneFeatureCollection

        Raises:
            InvalidGeoJsonError: if the mapping is not a FeatureCollection
        """
        if not is_valid_feature_collection(data):
            raise InvalidGeoJsonError("Invalid GeoJSON format. Expected a FeatureCollection.")

        features = []
        for raw in data["features"]:
            if not isinstance(raw, dict):
                logging.debug(f"Skipping non-object feature entry: {raw!r}")
                continue
            features.append(TimeZoneFeature.from_geojson(raw))

        return cls(features=tuple(features))

    def to_geojson(self) -> Dict:
        return {
            "type": "FeatureCollection",
            "features": [feature.to_geojson() for feature in self.features],
        }

    def find(self, tzid: str) -> Optional[TimeZoneFeature]:
        """First feature with the given tzid, or None."""
        for feature in self.features:
            if feature.tzid == tzid:
                return feature
        return None

    @property
    def tzids(self) -> List[str]:
        return [feature.tzid for feature in self.features]

    def is_empty(self) -> bool:
        return len(self.features) == 0

    def __len__(self) -> int:
        return len(self.features)

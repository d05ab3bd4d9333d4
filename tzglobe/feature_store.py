# tzglobe/feature_store.py
"""Timezone dataset store with three-tier resolution.

Resolution order (first success wins):
1. Process memory (no I/O once loaded)
2. Durable local store (SQLite or Redis) for a fast first load
3. Remote source, always consulted on a cold load; fresh data replaces
   memory and is written back to the durable store

If neither tier yields data the empty FeatureCollection is cached as an
explicit "unavailable" value. Concurrent callers share one load through the
singleflight guard.
"""

import json
import logging
from typing import Dict, Optional

import config
from tzglobe.durable_store import build_durable_store
from tzglobe.models import (
    InvalidGeoJsonError,
    TimeZoneFeatureCollection,
    is_usable_feature_collection,
    is_valid_feature_collection,
)
from tzglobe.remote_source import build_remote_source
from tzglobe.singleflight import SingleflightCache

STATE_IDLE = "idle"
STATE_LOADING = "loading"
STATE_LOADED = "loaded"


def _parse_collection(data: Dict, source: str) -> Optional[TimeZoneFeatureCollection]:
    """Validated FeatureCollection or None; bad payloads are dropped whole."""
    if not is_usable_feature_collection(data):
        logging.warning(f"Discarding invalid timezone data from {source}")
        return None

    try:
        return TimeZoneFeatureCollection.from_geojson(data)
    except (InvalidGeoJsonError, TypeError, AttributeError) as e:
        logging.warning(f"Discarding malformed timezone data from {source}: {e}")
        return None


class FeatureStore:
    """Process-wide owner of the loaded timezone FeatureCollection."""

    def __init__(self, remote=None, durable=None, cache_key: str = None):
        self.remote = remote
        self.durable = durable
        self.cache_key = cache_key or config.TZ_CACHE_KEY
        self.singleflight = SingleflightCache()

        self._collection: Optional[TimeZoneFeatureCollection] = None
        self._state = STATE_IDLE

        self.stats = {
            "memory_hits": 0,
            "durable_hits": 0,
            "remote_fetches": 0,
            "remote_failures": 0,
            "persist_failures": 0,
            "empty_fallbacks": 0
        }

    async def ensure_loaded(self) -> TimeZoneFeatureCollection:
        """Return the timezone dataset, loading it on first use.

        Never raises and never returns None: when no tier has data the empty
        collection is returned (and cached).
        """
        if self._collection is not None:
            self.stats["memory_hits"] += 1
            return self._collection

        return await self.singleflight.get_or_fetch(self.cache_key, self._load)

    async def _load(self) -> TimeZoneFeatureCollection:
        self._state = STATE_LOADING
        try:
            # Step 1: durable store for a fast initial load
            local = await self._read_durable()
            if local is not None:
                logging.info(f"Loaded timezone data from durable store: {len(local)} features")
                self._collection = local

            # Step 2: remote source, replaces whatever the durable store had
            fresh = await self._fetch_remote()
            if fresh is not None:
                collection, data = fresh
                logging.info(f"✅ Fetched timezone data from remote source: {len(collection)} features")
                self._collection = collection
                await self._persist(data)
                return collection

            # Step 3: durable data only
            if self._collection is not None:
                return self._collection

            # Step 4: nothing anywhere
            logging.warning("No timezone data available from remote source or durable store")
            self.stats["empty_fallbacks"] += 1
            self._collection = TimeZoneFeatureCollection.empty()
            return self._collection

        except Exception as e:
            logging.error(f"Error loading timezone data: {e}")
            if self._collection is None:
                self.stats["empty_fallbacks"] += 1
                self._collection = TimeZoneFeatureCollection.empty()
            return self._collection
        finally:
            self._state = STATE_LOADED

    async def _read_durable(self) -> Optional[TimeZoneFeatureCollection]:
        if self.durable is None:
            return None

        try:
            data = await self.durable.get(self.cache_key)
        except Exception as e:
            logging.error(f"Error reading timezone data from durable store: {e}")
            return None

        if data is None:
            return None

        collection = _parse_collection(data, "durable store")
        if collection is not None:
            self.stats["durable_hits"] += 1
        return collection

    async def _fetch_remote(self):
        if self.remote is None:
            return None

        self.stats["remote_fetches"] += 1
        try:
            text = await self.remote.fetch_text()
        except Exception as e:
            logging.warning(f"Failed to fetch timezone data from remote source: {e}")
            self.stats["remote_failures"] += 1
            return None

        if not text or text.strip() == "":
            logging.warning("Remote source returned no timezone data")
            self.stats["remote_failures"] += 1
            return None

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logging.warning(f"Remote timezone data is not valid JSON: {e}")
            self.stats["remote_failures"] += 1
            return None

        collection = _parse_collection(data, "remote source")
        if collection is None:
            self.stats["remote_failures"] += 1
            return None
        return collection, data

    async def _persist(self, data: Dict):
        """Write-back to the durable store; failures are logged only."""
        if self.durable is None:
            return

        try:
            stored = await self.durable.put(self.cache_key, data)
        except Exception as e:
            logging.warning(f"Failed to cache timezone data to durable store: {e}")
            stored = False

        if stored is False:
            self.stats["persist_failures"] += 1
        else:
            logging.info("Timezone data cached to durable store for offline use")

    async def publish(self, text: str) -> TimeZoneFeatureCollection:
        """Upload a new dataset and make it the current one.

        Steps: validate, push to the remote source, persist locally, replace
        the in-memory value.

        Args:
            text: Serialized GeoJSON FeatureCollection

        Returns:
            The newly active collection

        Raises:
            InvalidGeoJsonError: if text is not a FeatureCollection
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidGeoJsonError(f"Invalid GeoJSON: {e}") from e

        if not is_valid_feature_collection(data):
            raise InvalidGeoJsonError("Invalid GeoJSON format. Expected a FeatureCollection.")

        collection = TimeZoneFeatureCollection.from_geojson(data)

        if self.remote is not None:
            await self.remote.publish_text(text)

        await self._persist(data)

        self._collection = collection
        self._state = STATE_LOADED
        logging.info(f"✅ Published timezone data: {len(collection)} features")
        return collection

    def invalidate(self):
        """Forget the in-memory dataset; the next ensure_loaded() reloads."""
        self._collection = None
        if not self.is_loading():
            self._state = STATE_IDLE

    def get_cached(self) -> Optional[TimeZoneFeatureCollection]:
        return self._collection

    def is_loaded(self) -> bool:
        return self._collection is not None and not self.is_loading()

    def is_loading(self) -> bool:
        return self._state == STATE_LOADING or self.singleflight.is_in_flight(self.cache_key)

    @property
    def state(self) -> str:
        return self._state

    def get_stats(self) -> Dict:
        return {
            **self.stats,
            "state": self._state,
            "features": len(self._collection) if self._collection is not None else 0,
            "singleflight": self.singleflight.get_stats()
        }


# Global instance
feature_store = FeatureStore(remote=build_remote_source(), durable=build_durable_store())

import asyncio
import json

import pytest

from geojson_factory import StubDurable, StubRemote, feature_collection, polygon_feature, square
from tzglobe.durable_store import SQLiteKeyValueStore
from tzglobe.feature_store import STATE_IDLE, STATE_LOADED, FeatureStore
from tzglobe.models import InvalidGeoJsonError, is_usable_feature_collection

KEY = "timezone-geojson-data"


def make_store(remote=None, durable=None):
    return FeatureStore(remote=remote, durable=durable, cache_key=KEY)


def test_concurrent_loads_share_one_fetch(test_zone_data):
    remote = StubRemote(json.dumps(test_zone_data), delay=0.05)
    durable = StubDurable()
    store = make_store(remote, durable)

    async def load_many():
        return await asyncio.gather(*[store.ensure_loaded() for _ in range(10)])

    results = asyncio.run(load_many())

    assert remote.fetch_calls == 1
    assert durable.get_calls == 1
    assert durable.put_calls == 1
    assert all(r is results[0] for r in results)
    assert results[0].tzids == ["Test/Zone"]
    assert store.singleflight.get_stats()["saves"] == 9


def test_loaded_value_is_served_from_memory(test_zone_data):
    remote = StubRemote(json.dumps(test_zone_data))
    store = make_store(remote, StubDurable())

    async def load_twice():
        first = await store.ensure_loaded()
        second = await store.ensure_loaded()
        return first, second

    first, second = asyncio.run(load_twice())

    assert first is second
    assert remote.fetch_calls == 1
    assert store.stats["memory_hits"] == 1
    assert store.is_loaded()
    assert store.state == STATE_LOADED


def test_remote_result_is_persisted(test_zone_data):
    durable = StubDurable()
    store = make_store(StubRemote(json.dumps(test_zone_data)), durable)

    asyncio.run(store.ensure_loaded())

    assert durable.data[KEY] == test_zone_data


def test_remote_replaces_durable_copy(test_zone_data):
    stale = feature_collection(polygon_feature("Old/Zone", square(0, 0, 1, 1)))
    durable = StubDurable({KEY: stale})
    store = make_store(StubRemote(json.dumps(test_zone_data)), durable)

    collection = asyncio.run(store.ensure_loaded())

    assert collection.tzids == ["Test/Zone"]
    assert durable.data[KEY] == test_zone_data
    assert store.stats["durable_hits"] == 1


def test_durable_copy_used_when_remote_fails(test_zone_data):
    durable = StubDurable({KEY: test_zone_data})
    store = make_store(StubRemote(error=RuntimeError("offline")), durable)

    collection = asyncio.run(store.ensure_loaded())

    assert collection.tzids == ["Test/Zone"]
    assert store.stats["remote_failures"] == 1
    assert durable.put_calls == 0


@pytest.mark.parametrize("text", [
    None,
    "",
    "   ",
    "not json",
    '{"type": "Feature"}',
    '{"type": "FeatureCollection", "features": []}',
    '{"type": "FeatureCollection", "features": {}}',
])
def test_unusable_remote_payload_falls_back_to_empty(text):
    durable = StubDurable()
    store = make_store(StubRemote(text), durable)

    collection = asyncio.run(store.ensure_loaded())

    assert collection is not None
    assert collection.is_empty()
    assert durable.put_calls == 0
    assert store.stats["empty_fallbacks"] == 1


def test_invalid_durable_payload_is_ignored():
    durable = StubDurable({KEY: {"type": "Feature"}})
    store = make_store(None, durable)

    collection = asyncio.run(store.ensure_loaded())

    assert collection.is_empty()
    assert store.stats["durable_hits"] == 0


def test_empty_sentinel_is_cached_until_invalidated(test_zone_data):
    remote = StubRemote(None)
    store = make_store(remote, StubDurable())

    async def scenario():
        first = await store.ensure_loaded()
        again = await store.ensure_loaded()
        remote.text = json.dumps(test_zone_data)
        store.invalidate()
        assert store.state == STATE_IDLE
        reloaded = await store.ensure_loaded()
        return first, again, reloaded

    first, again, reloaded = asyncio.run(scenario())

    assert first.is_empty() and again.is_empty()
    assert reloaded.tzids == ["Test/Zone"]
    assert remote.fetch_calls == 2


def test_durable_read_error_is_a_miss(test_zone_data):
    durable = StubDurable(get_error=OSError("disk gone"))
    store = make_store(StubRemote(json.dumps(test_zone_data)), durable)

    collection = asyncio.run(store.ensure_loaded())

    assert collection.tzids == ["Test/Zone"]


@pytest.mark.parametrize("durable", [
    StubDurable(put_result=False),
    StubDurable(put_error=OSError("read-only")),
])
def test_persist_failure_does_not_affect_result(test_zone_data, durable):
    store = make_store(StubRemote(json.dumps(test_zone_data)), durable)

    collection = asyncio.run(store.ensure_loaded())

    assert collection.tzids == ["Test/Zone"]
    assert store.stats["persist_failures"] == 1
    assert store.get_cached() is collection


def test_no_sources_at_all():
    store = make_store(None, None)
    collection = asyncio.run(store.ensure_loaded())
    assert collection.is_empty()
    assert store.get_stats()["features"] == 0


def test_sqlite_round_trip_without_remote(tmp_path, test_zone_data):
    db_path = str(tmp_path / "tz_cache.db")

    online = make_store(StubRemote(json.dumps(test_zone_data)), SQLiteKeyValueStore(db_path))
    original = asyncio.run(online.ensure_loaded())

    offline = make_store(None, SQLiteKeyValueStore(db_path))
    reloaded = asyncio.run(offline.ensure_loaded())

    assert is_usable_feature_collection(original.to_geojson())
    assert is_usable_feature_collection(reloaded.to_geojson())
    assert reloaded == original
    assert offline.stats["durable_hits"] == 1


def test_publish_validates_uploads_and_persists(test_zone_data):
    remote = StubRemote(None)
    durable = StubDurable()
    store = make_store(remote, durable)
    text = json.dumps(test_zone_data)

    collection = asyncio.run(store.publish(text))

    assert collection.tzids == ["Test/Zone"]
    assert remote.published == [text]
    assert durable.data[KEY] == test_zone_data
    assert store.get_cached() is collection
    assert store.is_loaded()


@pytest.mark.parametrize("text", ["{broken", '{"type": "Feature", "features": []}', "[]"])
def test_publish_rejects_invalid_geojson(text):
    remote = StubRemote(None)
    durable = StubDurable()
    store = make_store(remote, durable)

    with pytest.raises(InvalidGeoJsonError):
        asyncio.run(store.publish(text))

    assert remote.published == []
    assert durable.put_calls == 0
    assert store.get_cached() is None


def test_is_loading_during_load(test_zone_data):
    store = make_store(StubRemote(json.dumps(test_zone_data), delay=0.05), StubDurable())

    async def scenario():
        task = asyncio.ensure_future(store.ensure_loaded())
        await asyncio.sleep(0.01)
        during = store.is_loading()
        await task
        return during

    assert asyncio.run(scenario()) is True
    assert not store.is_loading()
    assert store.is_loaded()

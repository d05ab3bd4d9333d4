from datetime import datetime

import pytest
import pytz

from geojson_factory import feature_collection, polygon_feature, square
from tzglobe.models import TimeZoneFeatureCollection


@pytest.fixture
def winter_now():
    return datetime(2024, 1, 15, 12, 0, tzinfo=pytz.utc)


@pytest.fixture
def summer_now():
    return datetime(2024, 7, 15, 12, 0, tzinfo=pytz.utc)


@pytest.fixture
def test_zone_data():
    return feature_collection(polygon_feature("Test/Zone", [[0, 0], [0, 10], [10, 10], [10, 0], [0, 0]]))


@pytest.fixture
def test_zone_collection(test_zone_data):
    return TimeZoneFeatureCollection.from_geojson(test_zone_data)


@pytest.fixture
def world_collection():
    return TimeZoneFeatureCollection.from_geojson(feature_collection(
        polygon_feature("Asia/Kathmandu", square(80, 26, 88, 30)),
        polygon_feature("Asia/Kolkata", square(70, 8, 80, 26)),
        polygon_feature("Asia/Shanghai", square(100, 20, 120, 40)),
        polygon_feature("Asia/Singapore", square(103, 1, 104, 2)),
        polygon_feature("America/New_York", square(-80, 35, -70, 45)),
        polygon_feature("Etc/GMT-8", square(150, -10, 160, 0)),
        polygon_feature("Etc/GMT+5", square(-150, -10, -140, 0)),
        polygon_feature("Not/AZone", square(0, -60, 10, -50)),
    ))

"""Shared fixtures for the histmap test suite."""

import json

import pytest

from histmap.core.store import FeatureStore


@pytest.fixture
def store():
    return FeatureStore()


SAMPLE_GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "id": "r1",
            "geometry": {"type": "LineString", "coordinates": [[8.0, 47.0], [8.1, 47.0]]},
            "properties": {
                "name": "Old Road",
                "surface": "gravel",
                "_iamAttributes": [
                    {"propertyName": "status", "propertyValue": "planned", "fromYear": 1900, "toYear": 1910},
                    {"propertyName": "status", "propertyValue": "open", "fromYear": 1910},
                ],
            },
        },
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [8.05, 46.9]},
            "properties": {"id": "c1", "name": "Chapel", "tags": {"denomination": "reformed"}},
        },
        {
            "type": "Feature",
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[8.0, 47.0], [8.02, 47.0], [8.02, 47.02], [8.0, 47.0]]],
            },
            "properties": {"name": "Field"},
        },
    ],
}


@pytest.fixture
def sample_geojson_text():
    return json.dumps(SAMPLE_GEOJSON)


@pytest.fixture
def sample_geojson_file(tmp_path, sample_geojson_text):
    path = tmp_path / "map.geojson"
    path.write_text(sample_geojson_text, encoding="utf-8")
    return path

"""
Export of a feature store as a GeoJSON FeatureCollection.

The export can be read back with ``GeoJSONFeaturesSource``: properties are
written as GeoJSON properties, the attribute history goes into
``_iamAttributes`` and the settings travel in a pseudo point feature with id
``_iam_Settings`` placed at the south-west corner of the data.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Optional

from histmap.core.store import FeatureStore
from histmap.io.base import FEATURE_SETTINGS_KEY, MAP_SETTINGS_KEY, SETTINGS_FEATURE_ID
from histmap.model import ExtendedFeature, FeatureType


def _settings_anchor(store: FeatureStore) -> list:
    lon, lat = store.get_min_longitude(), store.get_min_latitude()
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return [0.0, 0.0]
    return [lon, lat]


def to_geojson_dict(
    store: FeatureStore,
    add_properties: bool = True,
    add_attributes: bool = True,
    add_settings: bool = True,
    map_settings: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    ret: Dict[str, Any] = {"type": "FeatureCollection", "features": []}
    for feature in store.get_all_features():
        ret["features"].append(feature.to_geojson(add_properties, add_attributes))
    if add_settings:
        helper = ExtendedFeature(FeatureType.POINT, SETTINGS_FEATURE_ID, _settings_anchor(store))
        settings = store.get_settings_as_object(map_settings)
        helper.properties[FEATURE_SETTINGS_KEY] = settings[FEATURE_SETTINGS_KEY]
        if map_settings:
            helper.properties[MAP_SETTINGS_KEY] = map_settings
        ret["features"].append(helper.to_geojson(True, False))
    return ret


def to_geojson(
    store: FeatureStore,
    add_properties: bool = True,
    add_attributes: bool = True,
    add_settings: bool = True,
    map_settings: Optional[Dict[str, Any]] = None,
    *,
    indent: Optional[int] = None,
) -> str:
    return json.dumps(
        to_geojson_dict(store, add_properties, add_attributes, add_settings, map_settings),
        ensure_ascii=False,
        indent=indent,
    )


def write_geojson(
    store: FeatureStore,
    path: str | Path,
    add_properties: bool = True,
    add_attributes: bool = True,
    add_settings: bool = True,
    map_settings: Optional[Dict[str, Any]] = None,
    *,
    trace: Any = None,
) -> Path:
    out = Path(path)
    with open(out, "w", encoding="utf-8") as f:
        f.write(to_geojson(store, add_properties, add_attributes, add_settings, map_settings, indent=2))
    if trace is not None:
        trace.emit({"event": "output.geojson", "path": str(out), "features": len(store.get_all_features())})
    return out

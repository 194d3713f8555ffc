"""
GeoJSON adapter.

Reads a FeatureCollection (or a single Feature) into features, properties and
attributes. Property keys starting with ``_iam`` are internal: the attribute
history of a feature lives in ``_iamAttributes`` and a pseudo feature with id
``_iam_Settings`` carries the feature settings and map settings of an export.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from histmap.core.geometry import is_path, is_position, is_rings
from histmap.core.result import ProcessResult, Status
from histmap.io.base import (
    FEATURE_SETTINGS_KEY,
    INVALID_DATA_TEXT,
    MAP_SETTINGS_KEY,
    SETTINGS_FEATURE_ID,
    DataSource,
)
from histmap.model import (
    ATTRIBUTES_KEY,
    RESERVED_PREFIX,
    ExtendedFeature,
    FeatureAttribute,
    FeatureProperty,
    FeatureType,
)

_VALIDATORS = {
    FeatureType.POINT: is_position,
    FeatureType.LINESTRING: is_path,
    FeatureType.POLYGON: is_rings,
}


def _first_defined(*values: Any) -> Optional[str]:
    for value in values:
        if value is not None and value != "":
            return str(value)
    return None


def _feature_list(data: Any) -> List[Any]:
    if isinstance(data, dict):
        if data.get("type") == "FeatureCollection" and isinstance(data.get("features"), list):
            return data["features"]
        if data.get("type") == "Feature":
            return [data]
    raise ValueError("Expected a GeoJSON FeatureCollection or Feature")


def _property_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


class GeoJSONFeaturesSource(DataSource):
    default_text = "Features read successfully!"

    def __init__(
        self,
        raw_data: str,
        process_result: Optional[ProcessResult] = None,
        *,
        trace: Any = None,
    ):
        super().__init__(raw_data, process_result, trace=trace)
        try:
            items = _feature_list(json.loads(raw_data))
        except (TypeError, ValueError) as e:
            self.process_result.fail(INVALID_DATA_TEXT, str(e))
            return

        for index, item in enumerate(items, start=1):
            self._read_item(item, index)
        self.process_result.add_detail(
            Status.INFO, f"{len(items)} features successfully read from data source."
        )

    def _read_item(self, item: Any, index: int) -> None:
        if not isinstance(item, dict):
            self.process_result.add_detail(Status.WARN, f"WARNING: Entry {index} is not a GeoJSON feature.")
            return
        props = item.get("properties") or {}
        if not isinstance(props, dict):
            props = {}
        feature_id = _first_defined(props.get("id"), item.get("id"), props.get("name")) or f"iam_{index}"

        if feature_id == SETTINGS_FEATURE_ID:
            self._read_settings_feature(props)
            return

        geometry = item.get("geometry") or {}
        geometry_type = geometry.get("type") if isinstance(geometry, dict) else None
        try:
            feature_type = FeatureType.from_name(geometry_type)
        except ValueError:
            self.process_result.add_detail(
                Status.WARN,
                f"WARNING: Feature {feature_id} skipped: unsupported geometry type {geometry_type!r}.",
            )
            return
        coordinates = geometry.get("coordinates")
        if not _VALIDATORS[feature_type](coordinates):
            self.process_result.add_detail(
                Status.WARN, f"WARNING: Feature {feature_id} skipped: invalid coordinates."
            )
            return

        feature = ExtendedFeature(feature_type, feature_id, coordinates)
        self._features.append(feature)
        self._read_properties(feature, props)
        self._read_attributes(feature, props.get(ATTRIBUTES_KEY))
        self._emit(
            {
                "event": "input.geojson.feature",
                "idx": index,
                "geom": feature_type.geojson_name,
                "id": feature_id,
            }
        )

    def _read_properties(self, feature: ExtendedFeature, props: Dict[str, Any]) -> None:
        for key, value in props.items():
            if key in ("id", "geometry") or key.startswith(RESERVED_PREFIX):
                continue
            self._properties.append(
                FeatureProperty(feature.feature_type, feature.id, key, _property_value(value))
            )

    def _read_attributes(self, feature: ExtendedFeature, raw: Any) -> None:
        if raw is None:
            return
        if not isinstance(raw, list):
            self.process_result.add_detail(
                Status.WARN,
                f"WARNING: Unable to process attributes of feature {feature.id} due to "
                f"{ATTRIBUTES_KEY} not being a list",
            )
            return
        for entry in raw:
            try:
                self._attributes.append(
                    FeatureAttribute.from_dict(entry, feature_type=feature.feature_type, feature_id=feature.id)
                )
            except (AttributeError, TypeError, ValueError) as e:
                self.process_result.add_detail(
                    Status.WARN,
                    f"WARNING: Unable to process attributes of feature {feature.id} due to {e}",
                )

    def _read_settings_feature(self, props: Dict[str, Any]) -> None:
        entries = props.get(FEATURE_SETTINGS_KEY)
        if entries is not None:
            counter = self._read_settings(entries)
            self.process_result.add_detail(Status.INFO, f"{counter} settings read from data source.")
        map_settings = props.get(MAP_SETTINGS_KEY)
        if isinstance(map_settings, dict):
            self._map_settings = map_settings
        self._emit({"event": "input.geojson.settings", "settings": len(self._settings)})

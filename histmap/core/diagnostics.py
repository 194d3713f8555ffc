"""
Diagnostics helpers.

Summaries of a loaded store, used by ``histmap inspect`` and handy when paired
with JSONL trace logs.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from histmap.core.settings import LevelType
from histmap.core.store import FeatureStore
from histmap.model import FeatureType


def store_inventory(store: FeatureStore) -> Dict[str, Any]:
    counts = store.counts()
    per_type = {
        ft.geojson_name: len(store.get_all_features_with_type(ft)) for ft in FeatureType
    }
    has_attributes = counts["attributes"] > 0
    return {
        "feature_count": counts["features"],
        "property_count": counts["properties"],
        "attribute_count": counts["attributes"],
        "settings_count": counts["settings"],
        "features_per_type": per_type,
        "year_range": (
            (store.get_attributes_minimum_year(), store.get_attributes_maximum_year())
            if has_attributes
            else None
        ),
        "bounding_box": (
            store.get_min_longitude(),
            store.get_min_latitude(),
            store.get_max_longitude(),
            store.get_max_latitude(),
        ),
        "attribute_names": {
            ft.geojson_name: store.get_all_attribute_names(ft) for ft in FeatureType
        },
    }


def check_data_quality(store: FeatureStore) -> Dict[str, Any]:
    """
    Check data quality and return warnings.

    Returns a dict with:
    - features_without_properties: list of (type name, feature id)
    - inverted_periods: list of (type name, feature id, attribute, from, to) where to < from
    - attributes_without_settings: list of (type name, attribute name) with no
      attribute level settings for any of its values
    """
    warnings: Dict[str, List[Tuple[Any, ...]]] = {
        "features_without_properties": [],
        "inverted_periods": [],
        "attributes_without_settings": [],
    }

    for feature in store.get_all_features():
        if not feature.properties:
            warnings["features_without_properties"].append((feature.feature_type.geojson_name, feature.id))

    for attribute in store.get_all_attributes():
        if (
            attribute.from_year is not None
            and attribute.to_year is not None
            and attribute.to_year < attribute.from_year
        ):
            warnings["inverted_periods"].append(
                (
                    attribute.feature_type.geojson_name,
                    attribute.feature_id,
                    attribute.property_name,
                    attribute.from_year,
                    attribute.to_year,
                )
            )

    for ft in FeatureType:
        for name in store.get_all_attribute_names(ft):
            if not store.get_settings(ft, LevelType.ATTRIBUTE, name):
                warnings["attributes_without_settings"].append((ft.geojson_name, name))

    return warnings

"""Choose an adapter for a file and run the loaders of a complete map."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from histmap.core.config import HistMapConfig
from histmap.core.result import ProcessResult
from histmap.core.store import FeatureStore, InsertType
from histmap.io.base import DataSource
from histmap.io.csv_sources import (
    FeatureAttributesCSVDataSource,
    FeaturePropertiesCSVDataSource,
    OSMEnhancementCSVDataSource,
)
from histmap.io.geojson_source import GeoJSONFeaturesSource
from histmap.io.kml_source import KMLFeaturesSource
from histmap.io.loader import load_text_sync
from histmap.io.settings_json import FeatureSettingsJSONDataSource

PathLike = Union[str, Path]


@dataclass
class LoadReport:
    result: ProcessResult
    map_settings: Optional[Dict[str, Any]] = None


def _looks_like_kml(name: str, text: str) -> bool:
    if name.lower().endswith(".kml"):
        return True
    head = text.lstrip()[:512].lower()
    return head.startswith("<") and "<kml" in head


def features_source(
    text: str,
    name: str = "",
    process_result: Optional[ProcessResult] = None,
    trace: Any = None,
) -> DataSource:
    """KML for ``.kml`` files or XML text starting with a kml element, GeoJSON otherwise."""
    if _looks_like_kml(name, text):
        return KMLFeaturesSource(text, process_result, trace=trace)
    return GeoJSONFeaturesSource(text, process_result, trace=trace)


def load_map(
    store: FeatureStore,
    features: PathLike,
    *,
    attributes_csv: Optional[PathLike] = None,
    properties_csv: Optional[PathLike] = None,
    settings_json: Optional[PathLike] = None,
    config: Optional[HistMapConfig] = None,
    trace: Any = None,
) -> LoadReport:
    """
    Load a feature file plus optional attribute/property/settings files.

    Every step reports into one process result. Read errors (missing file,
    failed download) are recorded as errors instead of being raised.
    """
    cfg = config or HistMapConfig()
    result = ProcessResult(text="Map loaded successfully!")

    try:
        text = load_text_sync(features)
    except ValueError as e:
        result.fail("Unable to read features.", str(e))
        return LoadReport(result)
    source = features_source(text, str(features), result, trace)
    store.load_features(source, cfg.insert_type, result, trace)
    if cfg.include_properties:
        store.load_features_properties(source, cfg.insert_type, result, trace)
    if cfg.include_attributes:
        store.load_features_attributes(source, cfg.insert_type, result, trace)
    if cfg.include_settings:
        store.load_settings(source, cfg.insert_type, result, trace)
    map_settings = source.get_map_settings()

    extra = (
        (properties_csv, FeaturePropertiesCSVDataSource, store.load_features_properties),
        (attributes_csv, FeatureAttributesCSVDataSource, store.load_features_attributes),
    )
    for path, source_cls, loader in extra:
        if path is None:
            continue
        try:
            text = load_text_sync(path)
        except ValueError as e:
            result.fail(f"Unable to read {path}.", str(e))
            continue
        loader(source_cls(text, result, delimiter=cfg.csv_delimiter, trace=trace), InsertType.OVERWRITE, result, trace)

    if settings_json is not None:
        try:
            settings_source = FeatureSettingsJSONDataSource(load_text_sync(settings_json), result, trace=trace)
        except ValueError as e:
            result.fail(f"Unable to read {settings_json}.", str(e))
        else:
            store.load_settings(settings_source, InsertType.OVERWRITE, result, trace)
            map_settings = settings_source.get_map_settings() or map_settings

    return LoadReport(result, map_settings)


def enhance_with_osm(
    store: FeatureStore,
    csv_path: PathLike,
    *,
    delimiter: Optional[str] = None,
    trace: Any = None,
) -> ProcessResult:
    """Add new points and ``_iam_name`` properties from an OSM enhancement CSV."""
    result = ProcessResult(text="Enhancing OSM data")
    try:
        text = load_text_sync(csv_path)
    except ValueError as e:
        result.fail(f"Unable to read {csv_path}.", str(e))
        return result
    source = OSMEnhancementCSVDataSource(text, result, delimiter=delimiter, trace=trace)
    store.load_features(source, InsertType.OVERWRITE, result, trace)
    store.load_features_properties(source, InsertType.OVERWRITE, result, trace)
    return result

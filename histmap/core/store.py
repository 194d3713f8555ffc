"""
In-memory feature store.

Four multi-key tables hold features, feature properties, feature attributes
and display settings. Properties and attributes are only accepted for features
that already exist; accepted records are also cached on the owning
``ExtendedFeature`` so that per-feature lookups do not need a table scan.

Every table has its own re-entrant lock. Operations that touch several tables
take the locks in one fixed order (features, properties, attributes, settings)
and hold them for the whole operation, so a bulk load is never observed half
done by a reader.
"""

from __future__ import annotations

import logging
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import date
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Sequence

from histmap.core.aggregation import (
    AGG_SUM,
    AGG_TYPES,
    COURSES,
    POINT_IN_TIME,
    dense_series,
    stock_series,
    year_keys,
)
from histmap.core.result import ProcessResult
from histmap.core.settings import (
    HAS_CHANGED,
    FeatureSettings,
    LevelType,
    standard_settings,
)
from histmap.core.table import MultiKeyTable
from histmap.model import (
    ExtendedFeature,
    Feature,
    FeatureAttribute,
    FeatureProperty,
    FeatureType,
)

logger = logging.getLogger(__name__)


class InsertType(IntEnum):
    OVERWRITE = 1
    DROPTABLE = 2


FEATURES_KEYS = ("feature_type", "id")
PROPERTIES_KEYS = ("feature_type", "feature_id", "property_name")
ATTRIBUTES_KEYS = ("feature_type", "feature_id", "property_name", "property_value")
SETTINGS_KEYS = ("feature_type", "level_type", "level_name", "level_value")

_LOCK_ORDER = ("features", "properties", "attributes", "settings")

FEATURE_SETTINGS_KEY = "_iam_FeatureSettings"
MAP_SETTINGS_KEY = "_iam_MapSettings"


@dataclass(frozen=True)
class FeatureWithAttribute:
    attribute: FeatureAttribute
    feature: ExtendedFeature


def _emit(trace: Any, event: Dict[str, Any]) -> None:
    if trace is not None:
        trace.emit(event)


def _is_type(feature_type: FeatureType):
    return lambda x: x == feature_type


def _from_year_order(attribute: FeatureAttribute):
    # Attributes without a start year sort first.
    return (attribute.from_year is not None, attribute.from_year or 0)


def _starts_within(year: Optional[int], year_from: Optional[int], year_to: Optional[int]) -> bool:
    # An open window bound never matches.
    if year is None or year_from is None or year_to is None:
        return False
    return year_from <= year <= year_to


def _result_for(process_result: Optional[ProcessResult], text: str) -> ProcessResult:
    return process_result if process_result is not None else ProcessResult(text=text)


def _extend(feature: Feature) -> ExtendedFeature:
    if isinstance(feature, ExtendedFeature):
        return feature
    return ExtendedFeature(feature.feature_type, feature.id, feature.coordinates)


class FeatureStore:
    def __init__(self) -> None:
        self._locks = {name: threading.RLock() for name in _LOCK_ORDER}
        self._init_tables()

    def _init_tables(self) -> None:
        self._features = MultiKeyTable(FEATURES_KEYS)
        self._properties = MultiKeyTable(PROPERTIES_KEYS)
        self._attributes = MultiKeyTable(ATTRIBUTES_KEYS)
        self._settings = MultiKeyTable(SETTINGS_KEYS)
        self._init_standard_settings()

    def _init_standard_settings(self) -> None:
        for feature_type in FeatureType:
            self._settings.add_item(standard_settings(feature_type))

    @contextmanager
    def _locked(self, *names: str) -> Iterator[None]:
        with ExitStack() as stack:
            for name in _LOCK_ORDER:
                if name in names:
                    stack.enter_context(self._locks[name])
            yield

    def reset(self) -> None:
        """Drop every table and re-seed the standard settings."""
        with self._locked(*_LOCK_ORDER):
            self._init_tables()
        logger.debug("Feature store reset")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_features(
        self,
        datasource: Any,
        insert_type: InsertType = InsertType.OVERWRITE,
        process_result: Optional[ProcessResult] = None,
        trace: Any = None,
    ) -> ProcessResult:
        """
        Insert the features of ``datasource``.

        DROPTABLE re-creates all four tables (a new feature set invalidates
        every property, attribute and setting). A feature replacing one with
        the same identity keeps the property and attribute caches of the old
        instance.
        """
        result = _result_for(process_result, "Features loaded successfully!")
        counter = 0
        with self._locked(*_LOCK_ORDER):
            if insert_type == InsertType.DROPTABLE:
                self._init_tables()
            try:
                for raw in datasource.get_features():
                    feature = _extend(raw)
                    previous = self._features.get_item([feature.feature_type, feature.id])
                    if previous is not None and previous is not feature:
                        feature.properties = dict(previous.properties)
                        feature.attributes = list(previous.attributes)
                    self._features.add_item(feature)
                    counter += 1
                result.info(f"{counter} features successfully loaded into database.")
            except Exception as e:
                result.fail("Error during upload of Features data into database.", str(e))
        _emit(trace, {"event": "load.features", "insert_type": InsertType(insert_type).name, "count": counter})
        return result

    def load_features_properties(
        self,
        datasource: Any,
        insert_type: InsertType = InsertType.OVERWRITE,
        process_result: Optional[ProcessResult] = None,
        trace: Any = None,
    ) -> ProcessResult:
        result = _result_for(process_result, "Features Properties loaded successfully!")
        counter = rejected = 0
        with self._locked("features", "properties"):
            if insert_type == InsertType.DROPTABLE:
                self._properties = MultiKeyTable(PROPERTIES_KEYS)
                for feature in self._features:
                    feature.clear_properties()
            try:
                for prop in datasource.get_features_properties():
                    feature = self._features.get_item([prop.feature_type, prop.feature_id])
                    if feature is None:
                        rejected += 1
                        result.warn(
                            "WARNING: Property not added as no feature found for featureId/featureType "
                            f"{prop.feature_id}/{prop.feature_type.geojson_name}"
                        )
                        continue
                    self._properties.add_item(prop)
                    feature.add_property(prop.property_name, prop.property_value)
                    counter += 1
                result.info(f"{counter} feature properties successfully loaded into database.")
            except Exception as e:
                result.fail("Error during upload of Features Properties data into database.", str(e))
        _emit(
            trace,
            {"event": "load.properties", "insert_type": InsertType(insert_type).name, "count": counter, "rejected": rejected},
        )
        return result

    def load_features_attributes(
        self,
        datasource: Any,
        insert_type: InsertType = InsertType.OVERWRITE,
        process_result: Optional[ProcessResult] = None,
        trace: Any = None,
    ) -> ProcessResult:
        result = _result_for(process_result, "Features Attributes loaded successfully!")
        counter = rejected = 0
        with self._locked("features", "attributes"):
            if insert_type == InsertType.DROPTABLE:
                self._attributes = MultiKeyTable(ATTRIBUTES_KEYS)
                for feature in self._features:
                    feature.clear_attributes()
            try:
                for attribute in datasource.get_features_attributes():
                    feature = self._features.get_item([attribute.feature_type, attribute.feature_id])
                    if feature is None:
                        rejected += 1
                        result.warn(
                            "WARNING: Attribute not added as no feature found for featureId/featureType "
                            f"{attribute.feature_id}/{attribute.feature_type.geojson_name}"
                        )
                        continue
                    if any(a.identity == attribute.identity for a in feature.attributes):
                        # the table replaces an identical record; the cache must not grow
                        feature.attributes = [
                            attribute if a.identity == attribute.identity else a for a in feature.attributes
                        ]
                    else:
                        feature.add_attribute(attribute)
                    self._attributes.add_item(attribute)
                    counter += 1
                result.info(f"{counter} feature attributes successfully loaded into database.")
            except Exception as e:
                result.fail("Error during upload of Features Attributes data into database.", str(e))
        _emit(
            trace,
            {"event": "load.attributes", "insert_type": InsertType(insert_type).name, "count": counter, "rejected": rejected},
        )
        return result

    def load_settings(
        self,
        datasource: Any,
        insert_type: InsertType = InsertType.OVERWRITE,
        process_result: Optional[ProcessResult] = None,
        trace: Any = None,
    ) -> ProcessResult:
        result = _result_for(process_result, "Settings loaded successfully!")
        counter = 0
        with self._locked("settings"):
            if insert_type == InsertType.DROPTABLE:
                self._settings = MultiKeyTable(SETTINGS_KEYS)
                self._init_standard_settings()
            try:
                for settings in datasource.get_features_settings():
                    self._settings.add_item(settings)
                    counter += 1
                result.info(f"{counter} settings successfully loaded into database.")
            except Exception as e:
                result.fail("Error during upload of settings data into database.", str(e))
        _emit(trace, {"event": "load.settings", "insert_type": InsertType(insert_type).name, "count": counter})
        return result

    # ------------------------------------------------------------------
    # Settings maintenance
    # ------------------------------------------------------------------

    def add_setting(self, settings: FeatureSettings) -> None:
        with self._locked("settings"):
            self._settings.add_item(settings)

    def delete_setting(self, settings: FeatureSettings) -> bool:
        """Remove an attribute or feature level setting. Standard settings stay."""
        if settings.is_standard:
            return False
        with self._locked("settings"):
            return self._settings.remove_item(settings)

    # ------------------------------------------------------------------
    # Feature queries
    # ------------------------------------------------------------------

    def get_feature(self, feature_type: Any, feature_id: Any) -> Optional[ExtendedFeature]:
        with self._locked("features"):
            return self._features.get_item([FeatureType.coerce(feature_type), str(feature_id)])

    def get_all_features(self) -> List[ExtendedFeature]:
        with self._locked("features"):
            return self._features.get_all_items([None, None])

    def get_all_features_with_type(self, feature_type: Any) -> List[ExtendedFeature]:
        ft = FeatureType.coerce(feature_type)
        with self._locked("features"):
            return self._features.get_all_items([_is_type(ft), None])

    def get_all_property_names(self, feature_type: Any) -> List[str]:
        ft = FeatureType.coerce(feature_type)
        with self._locked("properties"):
            return self._properties.get_all_keys([_is_type(ft), None, None])

    def get_all_attribute_names(self, feature_type: Any) -> List[str]:
        ft = FeatureType.coerce(feature_type)
        with self._locked("attributes"):
            return self._attributes.get_all_keys([_is_type(ft), None, None])

    def get_all_attribute_values(self, feature_type: Any, attribute_name: str) -> List[Any]:
        ft = FeatureType.coerce(feature_type)
        with self._locked("attributes"):
            return self._attributes.get_all_keys([_is_type(ft), None, lambda n: n == attribute_name, None])

    def get_all_attributes(self) -> List[FeatureAttribute]:
        with self._locked("attributes"):
            return self._attributes.get_all_items([None, None, None, None])

    def get_all_properties(self) -> List[FeatureProperty]:
        with self._locked("properties"):
            return self._properties.get_all_items([None, None, None])

    def get_all_features_with_attributes(
        self,
        feature_type: Any,
        attribute_name: str,
        attribute_value: Any,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
    ) -> List[FeatureWithAttribute]:
        """
        Attributes ``name = value`` starting inside the window, with their feature.

        Missing bounds default to the global attribute year range; attributes
        without ``from_year`` never match.
        """
        ft = FeatureType.coerce(feature_type)
        with self._locked("features", "attributes"):
            start = year_from if year_from is not None else self.get_attributes_minimum_year()
            end = year_to if year_to is not None else self.get_attributes_maximum_year()
            matches = self._attributes.get_all_items(
                [_is_type(ft), None, lambda n: n == attribute_name, lambda v: v == attribute_value]
            )
            return [
                FeatureWithAttribute(a, self._features.get_item([a.feature_type, a.feature_id]))
                for a in matches
                if a.from_year is not None and start <= a.from_year <= end
            ]

    def search(self, text: str) -> List[ExtendedFeature]:
        return [f for f in self.get_all_features() if f.matches(text)]

    # ------------------------------------------------------------------
    # Settings queries
    # ------------------------------------------------------------------

    def get_all_settings(self) -> List[FeatureSettings]:
        with self._locked("settings"):
            return self._settings.get_all_items([None, None, None, None])

    def get_standard_settings(self, feature_type: Any) -> Optional[FeatureSettings]:
        found = self.get_settings(feature_type, LevelType.STANDARD)
        return found[0] if found else None

    def get_settings(
        self,
        feature_type: Any,
        level_type: Any,
        level_name: Any = None,
        level_value: Any = None,
    ) -> List[FeatureSettings]:
        """Settings of one type and level; falsy name/value accept every record."""
        ft = FeatureType.coerce(feature_type)
        lt = LevelType(int(level_type))
        with self._locked("settings"):
            return self._settings.get_all_items(
                [
                    _is_type(ft),
                    lambda x: x == lt,
                    (lambda x: x == level_name) if level_name else None,
                    (lambda x: x == level_value) if level_value else None,
                ]
            )

    def get_settings_of_feature(
        self,
        feature_type: Any,
        feature_id: Any,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
    ) -> Optional[FeatureSettings]:
        """
        Resolve the effective settings of one feature for a year window.

        Layers, least specific first: the standard settings; the attribute
        settings of every attribute overlapping the window, in ascending
        ``from_year`` order (plus the ``HAS_CHANGED`` settings of that
        attribute name when the attribute starts inside a closed window); the
        feature's own settings. Each layer is merged over the running result,
        so later layers win on every field they define.
        """
        ft = FeatureType.coerce(feature_type)
        fid = str(feature_id)
        with self._locked("features", "attributes", "settings"):
            running = self.get_standard_settings(ft)
            feature = self._features.get_item([ft, fid])
            if feature is not None:
                active = sorted(
                    feature.get_attributes(lambda a: a.overlaps(year_from, year_to)),
                    key=_from_year_order,
                )
                for attribute in active:
                    layer = self._settings.get_item(
                        [ft, LevelType.ATTRIBUTE, attribute.property_name, attribute.property_value]
                    )
                    if layer is None:
                        continue
                    running = layer.merge(running)
                    if _starts_within(attribute.from_year, year_from, year_to):
                        changed = self._settings.get_item(
                            [ft, LevelType.ATTRIBUTE, attribute.property_name, HAS_CHANGED]
                        )
                        if changed is not None:
                            running = changed.merge(running)
            own = self.get_settings(ft, LevelType.FEATURE, fid)
            if own:
                running = own[0].merge(running)
        return running

    def get_settings_as_object(self, map_settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        ret: Dict[str, Any] = {FEATURE_SETTINGS_KEY: [s.to_dict() for s in self.get_all_settings()]}
        if map_settings:
            ret[MAP_SETTINGS_KEY] = map_settings
        return ret

    # ------------------------------------------------------------------
    # Aggregation and ranges
    # ------------------------------------------------------------------

    def _sum_lengths(self, bucket: List[FeatureAttribute]) -> float:
        total = 0.0
        for attribute in bucket:
            feature = self._features.get_item([attribute.feature_type, attribute.feature_id])
            if feature is not None:
                total += feature.length()
        return total

    def get_attribute_aggregation_per_year(
        self,
        feature_type: Any,
        attribute_name: str,
        attribute_values: Sequence[Any],
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
        agg_type: str = AGG_SUM,
        course: str = POINT_IN_TIME,
    ) -> List[Dict[str, Any]]:
        """
        Dense per-year series of the given attribute values.

        ``agg_type`` "sum" adds up feature lengths, "count" counts attribute
        records. Course "point in time" groups by ``from_year``; "time
        interval" returns running totals of starts minus ends.

        Raises:
            ValueError: unknown ``agg_type`` or ``course``
        """
        if agg_type not in AGG_TYPES:
            raise ValueError(f"Invalid aggregation type: {agg_type!r} (expected one of {AGG_TYPES})")
        if course not in COURSES:
            raise ValueError(f"Invalid course: {course!r} (expected one of {COURSES})")
        ft = FeatureType.coerce(feature_type)
        values = list(attribute_values)
        filters = [_is_type(ft), None, lambda n: n == attribute_name, lambda v: v in values]
        aggregate = self._sum_lengths if agg_type == AGG_SUM else len

        with self._locked("features", "attributes"):
            from_years = self._attributes.get_all_items_group_by(
                filters, ("from_year", "property_value"), aggregate
            )
            if course == POINT_IN_TIME:
                return dense_series(from_years, values, year_from, year_to)
            to_years = self._attributes.get_all_items_group_by(
                filters, ("to_year", "property_value"), aggregate
            )

        years = year_keys(from_years) + year_keys(to_years)
        start = year_from if year_from is not None else min(years, default=None)
        end = year_to if year_to is not None else max(years, default=None)
        if start is None or end is None:
            return []
        return stock_series(
            dense_series(from_years, values, start, end),
            dense_series(to_years, values, start, end),
            values,
        )

    def _attribute_years(self) -> List[int]:
        with self._locked("attributes"):
            return [a.from_year for a in self._attributes if a.from_year is not None]

    def get_attributes_minimum_year(self) -> int:
        """Smallest attribute start year; the current year when there is none."""
        return min(self._attribute_years(), default=date.today().year)

    def get_attributes_maximum_year(self) -> int:
        return max(self._attribute_years(), default=date.today().year)

    def get_min_longitude(self) -> float:
        return min((f.min_longitude() for f in self.get_all_features()), default=float("inf"))

    def get_min_latitude(self) -> float:
        return min((f.min_latitude() for f in self.get_all_features()), default=float("inf"))

    def get_max_longitude(self) -> float:
        return max((f.max_longitude() for f in self.get_all_features()), default=float("-inf"))

    def get_max_latitude(self) -> float:
        return max((f.max_latitude() for f in self.get_all_features()), default=float("-inf"))

    def counts(self) -> Dict[str, int]:
        with self._locked(*_LOCK_ORDER):
            return {
                "features": len(self._features),
                "properties": len(self._properties),
                "attributes": len(self._attributes),
                "settings": len(self._settings),
            }


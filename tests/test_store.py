"""Tests for the in-memory feature store."""

import json
import math

import pytest

from histmap.core.aggregation import AGG_COUNT, TIME_INTERVAL
from histmap.core.result import ProcessResult, Status
from histmap.core.settings import (
    Border,
    FeatureSettings,
    LevelType,
    LineStringSettings,
    standard_settings,
)
from histmap.core.store import FeatureStore, InsertType
from histmap.core.trace import MemoryTrace
from histmap.io.settings_json import FeatureSettingsJSONDataSource
from histmap.model import FeatureProperty, FeatureType

from tests.helpers import ListSource, attr, line, point

LS = FeatureType.LINESTRING


def _width_settings(name, value, width):
    return FeatureSettings.for_attribute(
        LS, name, value, style=LineStringSettings(line_border1=Border(width=width))
    )


class TestLoading:
    def test_standard_settings_seeded(self, store):
        assert len(store.get_all_settings()) == 3
        for ft in FeatureType:
            assert store.get_standard_settings(ft) == standard_settings(ft)

    def test_load_features_and_lookup(self, store):
        result = store.load_features(ListSource([line("r1"), point("p1")]))
        assert result.status == Status.INFO
        assert store.get_feature(LS, "r1").id == "r1"
        assert store.get_feature("Point", "p1") is not None
        assert [f.id for f in store.get_all_features_with_type(LS)] == ["r1"]

    def test_orphan_records_rejected_with_one_warning_each(self, store):
        store.load_features(ListSource([line("r1")]))
        result = ProcessResult(text="Loaded")
        source = ListSource(
            properties=[
                FeatureProperty(LS, "r1", "name", "Main"),
                FeatureProperty(LS, "missing", "name", "Ghost"),
            ],
            attributes=[attr("missing", "status", "open", 1900), attr("nope", "status", "open", 1901)],
        )
        store.load_features_properties(source, InsertType.OVERWRITE, result)
        store.load_features_attributes(source, InsertType.OVERWRITE, result)

        assert result.status == Status.WARN
        assert result.text == "Loaded with warnings"
        assert len(result.warnings()) == 3
        assert "missing/LineString" in result.warnings()[0]
        assert store.counts()["properties"] == 1
        assert store.counts()["attributes"] == 0

    def test_droptable_clears_every_table(self, store):
        store.load_features(ListSource([line("r1")]))
        store.load_features_attributes(ListSource(attributes=[attr("r1", "status", "open", 1900)]))
        store.add_setting(_width_settings("status", "open", 3))

        store.load_features(ListSource([line("r2")]), InsertType.DROPTABLE)
        counts = store.counts()
        assert counts == {"features": 1, "properties": 0, "attributes": 0, "settings": 3}

    def test_overwrite_keeps_caches_of_replaced_feature(self, store):
        store.load_features(ListSource([line("r1")]))
        store.load_features_properties(ListSource(properties=[FeatureProperty(LS, "r1", "name", "Main")]))
        store.load_features(ListSource([line("r1", ((0, 0), (2, 0)))]))
        feature = store.get_feature(LS, "r1")
        assert feature.get_property_value("name") == "Main"
        assert feature.coordinates[1] == [2, 0]

    def test_identical_attribute_not_duplicated(self, store):
        store.load_features(ListSource([line("r1")]))
        a = attr("r1", "status", "open", 1900)
        store.load_features_attributes(ListSource(attributes=[a]))
        store.load_features_attributes(ListSource(attributes=[a]))
        assert len(store.get_all_attributes()) == 1
        assert len(store.get_feature(LS, "r1").attributes) == 1

    def test_non_unique_attribute_values_are_kept(self, store):
        store.load_features(ListSource([line("r1")]))
        store.load_features_attributes(
            ListSource(attributes=[attr("r1", "status", "open", 1900, 1920), attr("r1", "status", "open", 1950)])
        )
        assert len(store.get_all_attributes()) == 2
        assert store.get_all_attribute_values(LS, "status") == ["open"]

    def test_loader_failure_recorded_as_error(self, store):
        class Broken(ListSource):
            def get_features(self):
                raise RuntimeError("boom")

        result = store.load_features(Broken())
        assert result.status == Status.ERROR
        assert result.text == "Error during upload of Features data into database."
        assert result.errors() == ["boom"]

    def test_trace_events(self, store):
        trace = MemoryTrace()
        store.load_features(ListSource([line("r1")]), trace=trace)
        store.load_features_properties(
            ListSource(properties=[FeatureProperty(LS, "x", "name", "n")]), trace=trace
        )
        assert trace.of("load.features")[0]["count"] == 1
        assert trace.of("load.properties")[0]["rejected"] == 1

    def test_reset(self, store):
        store.load_features(ListSource([line("r1")]))
        store.reset()
        assert store.get_all_features() == []
        assert len(store.get_all_settings()) == 3

    def test_loaded_standard_replaces_seeded_one(self, store):
        source = FeatureSettingsJSONDataSource(
            json.dumps(
                {
                    "_iam_FeatureSettings": [
                        {"featureType": 2, "levelType": 1, "levelName": "Standard", "lineBorder1": {"width": 9}}
                    ]
                }
            )
        )
        store.load_settings(source, InsertType.OVERWRITE)
        found = store.get_settings(LS, LevelType.STANDARD)
        assert len(found) == 1
        assert found[0].style.line_border1.width == 9
        assert store.get_standard_settings(LS).style.line_border1.width == 9
        assert len(store.get_all_settings()) == 3


class TestSettingsMaintenance:
    def test_delete_setting(self, store):
        s = _width_settings("status", "open", 3)
        store.add_setting(s)
        assert store.delete_setting(s) is True
        assert store.get_settings(LS, LevelType.ATTRIBUTE) == []
        assert store.delete_setting(s) is False

    def test_standard_settings_cannot_be_deleted(self, store):
        assert store.delete_setting(standard_settings(LS)) is False
        assert store.get_standard_settings(LS) is not None

    def test_get_settings_filters(self, store):
        store.add_setting(_width_settings("status", "open", 3))
        store.add_setting(_width_settings("status", "closed", 1))
        store.add_setting(_width_settings("owner", "city", 2))
        assert len(store.get_settings(LS, LevelType.ATTRIBUTE)) == 3
        assert len(store.get_settings(LS, LevelType.ATTRIBUTE, "status")) == 2
        assert len(store.get_settings(LS, LevelType.ATTRIBUTE, "status", "open")) == 1


class TestSettingsResolution:
    @pytest.fixture
    def populated(self, store):
        store.load_features(ListSource([line("r1")]))
        store.load_features_attributes(
            ListSource(
                attributes=[
                    attr("r1", "population", "1000", 1900, 1950),
                    attr("r1", "population", "2000", 1950),
                ]
            )
        )
        store.add_setting(_width_settings("population", "1000", 1))
        store.add_setting(_width_settings("population", "2000", 9))
        return store

    def _width(self, settings):
        return settings.style.line_border1.width

    def test_window_before_change_uses_first_value(self, populated):
        assert self._width(populated.get_settings_of_feature(LS, "r1", 1920, 1920)) == 1

    def test_window_after_change_uses_second_value(self, populated):
        assert self._width(populated.get_settings_of_feature(LS, "r1", 1960, 1960)) == 9

    def test_overlapping_values_later_start_wins(self, populated):
        assert self._width(populated.get_settings_of_feature(LS, "r1", 1950, 1950)) == 9

    def test_unset_fields_come_from_standard(self, populated):
        resolved = populated.get_settings_of_feature(LS, "r1", 1920, 1920)
        standard = populated.get_standard_settings(LS)
        assert resolved.style.line_border1.color == standard.style.line_border1.color
        assert resolved.text_settings == standard.text_settings

    def test_has_changed_applies_when_change_is_inside_window(self, populated):
        populated.add_setting(FeatureSettings.for_has_changed(LS, "population", show_text=True))
        assert populated.get_settings_of_feature(LS, "r1", 1945, 1955).show_text is True
        assert populated.get_settings_of_feature(LS, "r1", 1960, 1970).show_text is False

    def test_has_changed_needs_both_window_bounds(self, populated):
        populated.add_setting(FeatureSettings.for_has_changed(LS, "population", show_text=True))
        assert populated.get_settings_of_feature(LS, "r1").show_text is False
        assert populated.get_settings_of_feature(LS, "r1", 1945, None).show_text is False

    def test_feature_settings_win_last(self, populated):
        populated.add_setting(
            FeatureSettings.for_feature(LS, "r1", style=LineStringSettings(line_border1=Border(width=20)))
        )
        assert self._width(populated.get_settings_of_feature(LS, "r1", 1960, 1960)) == 20

    def test_unknown_feature_gets_standard(self, store):
        assert store.get_settings_of_feature(LS, "nope") == store.get_standard_settings(LS)

    def test_settings_as_object(self, populated):
        doc = populated.get_settings_as_object()
        assert len(doc["_iam_FeatureSettings"]) == 5
        assert "_iam_MapSettings" not in doc
        assert populated.get_settings_as_object({"zoom": 4})["_iam_MapSettings"] == {"zoom": 4}


class TestQueries:
    @pytest.fixture
    def populated(self, store):
        store.load_features(ListSource([line("r1"), line("r2", ((5, 5), (6, 6))), point("p1", -3, 40)]))
        store.load_features_properties(
            ListSource(
                properties=[
                    FeatureProperty(LS, "r1", "name", "Old Road"),
                    FeatureProperty(LS, "r2", "name", "New Road"),
                    FeatureProperty(FeatureType.POINT, "p1", "kind", "chapel"),
                ]
            )
        )
        store.load_features_attributes(
            ListSource(
                attributes=[
                    attr("r1", "status", "open", 1900),
                    attr("r2", "status", "open", 1930),
                    attr("r2", "status", "closed", None),
                ]
            )
        )
        return store

    def test_names(self, populated):
        assert populated.get_all_property_names(LS) == ["name"]
        assert populated.get_all_attribute_names(LS) == ["status"]
        assert sorted(populated.get_all_attribute_values(LS, "status")) == ["closed", "open"]

    def test_features_with_attributes_window(self, populated):
        found = populated.get_all_features_with_attributes(LS, "status", "open", 1890, 1910)
        assert [fa.feature.id for fa in found] == ["r1"]
        found = populated.get_all_features_with_attributes(LS, "status", "open")
        assert sorted(fa.feature.id for fa in found) == ["r1", "r2"]

    def test_attribute_without_start_year_never_matches(self, populated):
        assert populated.get_all_features_with_attributes(LS, "status", "closed", 0, 3000) == []

    def test_search_is_case_insensitive(self, populated):
        assert sorted(f.id for f in populated.search("road")) == ["r1", "r2"]
        assert [f.id for f in populated.search("CHAPEL")] == ["p1"]
        assert populated.search("castle") == []

    def test_year_range(self, populated):
        assert populated.get_attributes_minimum_year() == 1900
        assert populated.get_attributes_maximum_year() == 1930

    def test_bounding_box(self, populated):
        assert populated.get_min_longitude() == -3
        assert populated.get_min_latitude() == 0
        assert populated.get_max_longitude() == 6
        assert populated.get_max_latitude() == 40

    def test_empty_bounding_box(self, store):
        assert store.get_min_longitude() == math.inf
        assert store.get_min_latitude() == math.inf
        assert store.get_max_longitude() == -math.inf
        assert store.get_max_latitude() == -math.inf


class TestAggregation:
    def test_dense_fill(self, store):
        store.load_features(ListSource([line("r1"), line("r2")]))
        store.load_features_attributes(
            ListSource(attributes=[attr("r1", "status", "open", 1900), attr("r2", "status", "open", 1905)])
        )
        rows = store.get_attribute_aggregation_per_year(LS, "status", ["open"], 1900, 1905, AGG_COUNT)
        assert [r["year"] for r in rows] == [1900, 1901, 1902, 1903, 1904, 1905]
        assert [r["open"] for r in rows] == [1, 0, 0, 0, 0, 1]

    def test_sum_uses_length(self, store):
        r1 = line("r1")
        r2 = line("r2")
        r2.add_property("length", "5")
        store.load_features(ListSource([r1, r2]))
        store.load_features_attributes(
            ListSource(attributes=[attr("r1", "status", "open", 1900), attr("r2", "status", "open", 1900)])
        )
        rows = store.get_attribute_aggregation_per_year(LS, "status", ["open"])
        assert len(rows) == 1
        assert rows[0]["open"] == pytest.approx(111.195 + 5, abs=0.01)

    def test_time_interval_is_running_stock(self, store):
        store.load_features(ListSource([line("r1"), line("r2")]))
        store.load_features_attributes(
            ListSource(attributes=[attr("r1", "status", "open", 1900, 1903), attr("r2", "status", "open", 1901)])
        )
        rows = store.get_attribute_aggregation_per_year(
            LS, "status", ["open"], agg_type=AGG_COUNT, course=TIME_INTERVAL
        )
        assert [(r["year"], r["open"]) for r in rows] == [(1900, 1), (1901, 2), (1902, 2), (1903, 1)]

    def test_group_counts_match_record_count(self, store):
        store.load_features(ListSource([line("r1"), line("r2"), line("r3")]))
        store.load_features_attributes(
            ListSource(
                attributes=[
                    attr("r1", "status", "open", 1900),
                    attr("r2", "status", "closed", 1900),
                    attr("r3", "status", "open", 1901),
                ]
            )
        )
        rows = store.get_attribute_aggregation_per_year(LS, "status", ["open", "closed"], agg_type=AGG_COUNT)
        assert sum(r["open"] + r["closed"] for r in rows) == 3

    def test_no_data_is_empty(self, store):
        assert store.get_attribute_aggregation_per_year(LS, "status", ["open"]) == []

    @pytest.mark.parametrize("kwargs", [{"agg_type": "avg"}, {"course": "forever"}])
    def test_invalid_mode_raises(self, store, kwargs):
        with pytest.raises(ValueError):
            store.get_attribute_aggregation_per_year(LS, "status", ["open"], **kwargs)

"""
CSV adapters for attributes, properties and OSM enhancement lists.

The delimiter is ``;`` when the text contains one, otherwise ``,`` (unless a
delimiter is passed explicitly). The first row is the header; it must have at
least as many columns as the expected template, and columns named differently
from the template produce a warning each.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Dict, List, Optional, Sequence

from histmap.core.result import ProcessResult, Status
from histmap.io.base import INVALID_FILE_TEXT, DataSource
from histmap.model import ExtendedFeature, FeatureAttribute, FeatureProperty, FeatureType

ATTRIBUTES_HEADER = (
    "feature",
    "featureId",
    "propertyName",
    "propertyValue",
    "fromYear",
    "fromMonth",
    "fromDay",
    "toYear",
    "toMonth",
    "toDay",
)
PROPERTIES_HEADER = ("feature", "featureId", "propertyName1", "propertyValue1")
OSM_HEADER = ("Type", "Id", "Name", "longitude", "latitude")

MAX_PROPERTY_PAIRS = 9
OSM_NAME_PROPERTY = "_iam_name"

_DATE_COLUMNS = {
    "fromYear": "from_year",
    "fromMonth": "from_month",
    "fromDay": "from_day",
    "toYear": "to_year",
    "toMonth": "to_month",
    "toDay": "to_day",
}

Row = Dict[str, str]


def detect_delimiter(raw_data: str) -> str:
    return ";" if ";" in raw_data else ","


def _check_header(header: Sequence[str], template: Sequence[str], result: ProcessResult) -> None:
    if len(header) < len(template):
        raise ValueError(f"File must have at least {len(template)} columns in csv format")
    for index, expected in enumerate(template):
        if header[index] != expected:
            result.add_detail(
                Status.WARN,
                f"WARNING: column {index} should be named {expected}. Instead found {header[index]}",
            )


def read_csv_rows(
    raw_data: str,
    template: Sequence[str],
    result: ProcessResult,
    delimiter: Optional[str] = None,
) -> Optional[List[Row]]:
    """
    Parse ``raw_data`` into dicts keyed by header name.

    Empty cells are left out of the row dicts. Returns None (and records an
    error on ``result``) when the text is not usable.
    """
    try:
        reader = csv.reader(io.StringIO(raw_data), delimiter=delimiter or detect_delimiter(raw_data))
        rows = [row for row in reader if any(cell.strip() for cell in row)]
        if not rows:
            raise ValueError("File is empty")
        header = [cell.strip().lstrip("\ufeff") for cell in rows[0]]
        _check_header(header, template, result)
    except (csv.Error, ValueError) as e:
        result.fail(INVALID_FILE_TEXT, str(e))
        return None
    parsed: List[Row] = []
    for row in rows[1:]:
        parsed.append(
            {
                header[i]: cell.strip()
                for i, cell in enumerate(row)
                if i < len(header) and cell.strip() != ""
            }
        )
    return parsed


def _feature_type(row: Row, line: int, result: ProcessResult) -> Optional[FeatureType]:
    value = row.get("feature", "")
    try:
        return FeatureType.from_name(value)
    except ValueError:
        result.add_detail(
            Status.WARN,
            "WARNING: value of column 'feature' should be either 'Point', 'LineString' or 'Polygon'. "
            f"Instead found '{value}' (line {line}). Row will be ignored!",
        )
        return None


class FeatureAttributesCSVDataSource(DataSource):
    default_text = "Feature attributes read successfully!"

    def __init__(
        self,
        raw_data: str,
        process_result: Optional[ProcessResult] = None,
        *,
        delimiter: Optional[str] = None,
        trace: Any = None,
    ):
        super().__init__(raw_data, process_result, trace=trace)
        rows = read_csv_rows(raw_data, ATTRIBUTES_HEADER, self.process_result, delimiter)
        if rows is None:
            return
        for line, row in enumerate(rows, start=2):
            self._read_row(row, line)
        self.process_result.add_detail(
            Status.INFO, f"{len(self._attributes)} feature attributes read from data source."
        )
        self._emit({"event": "input.csv.attributes", "rows": len(rows), "attributes": len(self._attributes)})

    def _read_row(self, row: Row, line: int) -> None:
        feature_type = _feature_type(row, line, self.process_result)
        if feature_type is None:
            return
        if not row.get("featureId") or not row.get("propertyName"):
            self.process_result.add_detail(
                Status.WARN,
                f"WARNING: line {line} has no featureId or propertyName. Row will be ignored!",
            )
            return
        dates: Dict[str, int] = {}
        for column, field_name in _DATE_COLUMNS.items():
            raw = row.get(column)
            if raw is None:
                continue
            try:
                dates[field_name] = int(raw)
            except ValueError:
                self.process_result.add_detail(
                    Status.WARN,
                    f"WARNING: value of column '{column}' has to be a valid integer number. "
                    f"Instead found '{raw}' (line {line}). Value will be ignored!",
                )
        self._attributes.append(
            FeatureAttribute(
                feature_type=feature_type,
                feature_id=row["featureId"],
                property_name=row["propertyName"],
                property_value=row.get("propertyValue"),
                **dates,
            )
        )


class FeaturePropertiesCSVDataSource(DataSource):
    """
    One row per feature with up to nine ``propertyNameN``/``propertyValueN``
    pairs; reading a row stops at the first incomplete pair.
    """

    default_text = "Feature properties read successfully!"

    def __init__(
        self,
        raw_data: str,
        process_result: Optional[ProcessResult] = None,
        *,
        delimiter: Optional[str] = None,
        trace: Any = None,
    ):
        super().__init__(raw_data, process_result, trace=trace)
        rows = read_csv_rows(raw_data, PROPERTIES_HEADER, self.process_result, delimiter)
        if rows is None:
            return
        for line, row in enumerate(rows, start=2):
            feature_type = _feature_type(row, line, self.process_result)
            if feature_type is None or not row.get("featureId"):
                continue
            for i in range(1, MAX_PROPERTY_PAIRS + 1):
                name = row.get(f"propertyName{i}")
                value = row.get(f"propertyValue{i}")
                if not name or not value:
                    break
                self._properties.append(FeatureProperty(feature_type, row["featureId"], name, value))
        self.process_result.add_detail(
            Status.INFO, f"{len(self._properties)} feature properties read from data source."
        )
        self._emit({"event": "input.csv.properties", "rows": len(rows), "properties": len(self._properties)})


class OSMEnhancementCSVDataSource(DataSource):
    """
    Point list exported from OpenStreetMap tooling.

    Rows with ``Type == "new"`` become point features (their ``Name`` becomes
    the ``name`` property); every other row names an existing point through
    the ``_iam_name`` property.
    """

    default_text = "Enhancing OSM data"

    def __init__(
        self,
        raw_data: str,
        process_result: Optional[ProcessResult] = None,
        *,
        delimiter: Optional[str] = None,
        trace: Any = None,
    ):
        super().__init__(raw_data, process_result, trace=trace)
        rows = read_csv_rows(raw_data, OSM_HEADER, self.process_result, delimiter)
        if rows is None:
            return
        for line, row in enumerate(rows, start=2):
            feature_id = row.get("Id")
            if not feature_id:
                self.process_result.add_detail(Status.WARN, f"WARNING: line {line} has no Id. Row will be ignored!")
                continue
            name = row.get("Name")
            if row.get("Type") == "new":
                try:
                    coordinates = [float(row.get("longitude", "")), float(row.get("latitude", ""))]
                except ValueError:
                    self.process_result.add_detail(
                        Status.WARN, f"WARNING: line {line} has no valid longitude/latitude. Row will be ignored!"
                    )
                    continue
                self._features.append(ExtendedFeature(FeatureType.POINT, feature_id, coordinates))
                if name:
                    self._properties.append(FeatureProperty(FeatureType.POINT, feature_id, "name", name))
            elif name:
                self._properties.append(FeatureProperty(FeatureType.POINT, feature_id, OSM_NAME_PROPERTY, name))
        self.process_result.add_detail(
            Status.INFO,
            f"{len(self._features)} new points and {len(self._properties)} names read from data source.",
        )

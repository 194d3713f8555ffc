"""
KML adapter.

Reads Placemarks with Point, LineString or Polygon geometry. KML has no room
for attributes or settings; properties are taken from the ``<description>``
text written as ``key=value`` pairs separated by ``;``. An ``id`` pair in the
description overrides the feature id (otherwise ExtendedData ``id``, then the
placemark name is used).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import xml.etree.ElementTree as ET

from histmap.core.result import ProcessResult, Status
from histmap.io.base import INVALID_DATA_TEXT, SETTINGS_FEATURE_ID, DataSource
from histmap.model import ExtendedFeature, FeatureProperty, FeatureType

_UNSUPPORTED = ("MultiGeometry", "Model", "Track", "MultiTrack")


def _strip_namespaces(root: ET.Element) -> None:
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]


def _text(elem: Optional[ET.Element]) -> str:
    if elem is None or elem.text is None:
        return ""
    return elem.text


def _parse_extended_data(pm: ET.Element) -> Dict[str, str]:
    kv: Dict[str, str] = {}
    for d in pm.findall(".//ExtendedData//Data"):
        key = d.attrib.get("name")
        if key:
            kv[key.strip()] = _text(d.find("value")).strip()
    for d in pm.findall(".//ExtendedData//SimpleData"):
        key = d.attrib.get("name")
        if key:
            kv[key.strip()] = _text(d).strip()
    return kv


def _parse_coords(text: str) -> List[List[float]]:
    """
    Parse a KML coordinate list (``lon,lat[,alt]`` separated by whitespace).

    Malformed or out of range tuples are skipped; altitude is dropped.
    """
    pts: List[List[float]] = []
    for token in (text or "").split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        try:
            lon = float(parts[0])
            lat = float(parts[1])
        except ValueError:
            continue
        if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
            continue
        pts.append([lon, lat])
    return pts


def _geometry(pm: ET.Element) -> Tuple[Optional[FeatureType], Any]:
    if any(pm.find(f".//{tag}") is not None for tag in _UNSUPPORTED):
        return None, None
    point = pm.find(".//Point/coordinates")
    if point is not None:
        pts = _parse_coords(_text(point))
        return FeatureType.POINT, (pts[0] if pts else None)
    line = pm.find(".//LineString/coordinates")
    if line is not None:
        pts = _parse_coords(_text(line))
        return FeatureType.LINESTRING, (pts or None)
    polygon = pm.find(".//Polygon")
    if polygon is not None:
        outer = _parse_coords(_text(polygon.find("outerBoundaryIs/LinearRing/coordinates")))
        if not outer:
            return FeatureType.POLYGON, None
        rings = [outer]
        for inner in polygon.findall("innerBoundaryIs/LinearRing/coordinates"):
            ring = _parse_coords(_text(inner))
            if ring:
                rings.append(ring)
        return FeatureType.POLYGON, rings
    return None, None


class KMLFeaturesSource(DataSource):
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
            root = ET.fromstring(raw_data)
        except (ET.ParseError, TypeError, ValueError) as e:
            self.process_result.fail(INVALID_DATA_TEXT, f"Invalid KML (XML parse error): {e}")
            return
        _strip_namespaces(root)
        if root.tag.lower() != "kml":
            self.process_result.fail(INVALID_DATA_TEXT, f"Not a KML document (root element: {root.tag})")
            return

        placemarks = root.findall(".//Placemark")
        for index, pm in enumerate(placemarks, start=1):
            self._read_placemark(pm, index)
        self.process_result.add_detail(
            Status.INFO, f"{len(placemarks)} features successfully read from data source."
        )

    def _read_placemark(self, pm: ET.Element, index: int) -> None:
        name = _text(pm.find("name")).strip()
        kv = _parse_extended_data(pm)
        feature_id = kv.get("id") or name or f"iam_{index}"
        pairs = self._parse_description(_text(pm.find("description")))
        for key, value in pairs:
            if key == "id":
                feature_id = value
        if feature_id == SETTINGS_FEATURE_ID:
            return

        feature_type, coordinates = _geometry(pm)
        if feature_type is None:
            found = [tag for tag in _UNSUPPORTED if pm.find(f".//{tag}") is not None]
            self.process_result.add_detail(
                Status.WARN,
                f"WARNING: Feature {feature_id} skipped: unsupported geometry "
                f"{found[0] if found else 'missing'}.",
            )
            return
        if coordinates is None:
            self.process_result.add_detail(
                Status.WARN, f"WARNING: Feature {feature_id} skipped: invalid coordinates."
            )
            return

        feature = ExtendedFeature(feature_type, feature_id, coordinates)
        self._features.append(feature)
        for key, value in pairs:
            if key != "id":
                self._properties.append(FeatureProperty(feature_type, feature.id, key, value))
        self._emit(
            {
                "event": "input.kml.placemark",
                "idx": index,
                "geom": feature_type.geojson_name,
                "id": feature.id,
                "name_raw": name,
                "property_count": len(pairs),
            }
        )

    def _parse_description(self, description: str) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        for part in description.split(";"):
            if not part.strip():
                continue
            key_val = part.split("=")
            if len(key_val) != 2 or not key_val[0].strip():
                self.process_result.add_detail(
                    Status.WARN, f"WARNING: Invalid property structure in KML description tag: {part.strip()}"
                )
                continue
            pairs.append((key_val[0].strip(), key_val[1].strip()))
        return pairs

"""
Canonical feature model for histmap.

A map is made of features (points, line strings and polygons) identified by
``(feature_type, id)``. Features carry plain properties (``name``, ``length``,
...) and a history of attributes, i.e. named values with an optional period
of validity (``fromYear`` .. ``toYear``).

Geometry is set once when a feature is created and is not modified afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from histmap.core.geometry import BoundingBox, bounding_box, is_position, path_length_km


Scalar = Union[str, int, float, bool, None]
"""Value types allowed for properties and attribute values."""

ATTRIBUTES_KEY = "_iamAttributes"
"""GeoJSON property carrying the attribute history of a feature."""

RESERVED_PREFIX = "_iam"
"""Property keys with this prefix are internal and never imported as properties."""


class FeatureType(IntEnum):
    POINT = 1
    LINESTRING = 2
    POLYGON = 3

    @property
    def geojson_name(self) -> str:
        return _GEOJSON_NAMES[self]

    @classmethod
    def from_name(cls, name: str) -> "FeatureType":
        """Resolve a GeoJSON geometry name ("Point", "LineString", "Polygon")."""
        key = str(name or "").strip().lower()
        for ft, geojson_name in _GEOJSON_NAMES.items():
            if geojson_name.lower() == key:
                return ft
        raise ValueError(f"Unsupported feature type: {name!r}")

    @classmethod
    def coerce(cls, value: Any) -> "FeatureType":
        """Accept a FeatureType, its integer code or its GeoJSON name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        text = str(value or "").strip()
        if text.isdigit():
            return cls(int(text))
        return cls.from_name(text)


_GEOJSON_NAMES: Dict[FeatureType, str] = {
    FeatureType.POINT: "Point",
    FeatureType.LINESTRING: "LineString",
    FeatureType.POLYGON: "Polygon",
}


def _scalar(value: Any) -> Scalar:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not an integer: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Not an integer: {value!r}")
        return int(value)
    return int(str(value).strip())


@dataclass(frozen=True)
class FeatureProperty:
    """A single ``name = value`` pair owned by one feature."""

    feature_type: FeatureType
    feature_id: str
    property_name: str
    property_value: Scalar = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "feature_type", FeatureType.coerce(self.feature_type))
        object.__setattr__(self, "feature_id", str(self.feature_id))
        object.__setattr__(self, "property_value", _scalar(self.property_value))

    @property
    def identity(self) -> Tuple[Any, ...]:
        # A feature holds at most one value per property name.
        return (self.feature_type, self.feature_id, self.property_name)

    @property
    def feature_key(self) -> Tuple[FeatureType, str]:
        return (self.feature_type, self.feature_id)


@dataclass(frozen=True)
class FeatureAttribute:
    """
    A named value of a feature valid for an optional period.

    Years are integers; month and day are kept for display and export only.
    Two attributes are the same record only if every field matches, so one
    feature may carry several values for the same attribute name.
    """

    feature_type: FeatureType
    feature_id: str
    property_name: str
    property_value: Scalar = None
    from_year: Optional[int] = None
    from_month: Optional[int] = None
    from_day: Optional[int] = None
    to_year: Optional[int] = None
    to_month: Optional[int] = None
    to_day: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "feature_type", FeatureType.coerce(self.feature_type))
        object.__setattr__(self, "feature_id", str(self.feature_id))
        object.__setattr__(self, "property_value", _scalar(self.property_value))
        for name in _DATE_FIELDS:
            object.__setattr__(self, name, _optional_int(getattr(self, name)))

    @property
    def identity(self) -> Tuple[Any, ...]:
        return (
            self.feature_type,
            self.feature_id,
            self.property_name,
            self.property_value,
            self.from_year,
            self.from_month,
            self.from_day,
            self.to_year,
            self.to_month,
            self.to_day,
        )

    @property
    def feature_key(self) -> Tuple[FeatureType, str]:
        return (self.feature_type, self.feature_id)

    def overlaps(self, year_from: Optional[int], year_to: Optional[int]) -> bool:
        """True unless the validity period lies entirely outside the window."""
        if self.from_year is not None and year_to is not None and self.from_year > year_to:
            return False
        if self.to_year is not None and year_from is not None and self.to_year < year_from:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "featureType": int(self.feature_type),
            "featureId": self.feature_id,
            "propertyName": self.property_name,
            "propertyValue": self.property_value,
        }
        for name, key in zip(_DATE_FIELDS, _DATE_KEYS):
            value = getattr(self, name)
            if value is not None:
                out[key] = value
        return out

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        *,
        feature_type: Optional[FeatureType] = None,
        feature_id: Optional[str] = None,
    ) -> "FeatureAttribute":
        """
        Build an attribute from its JSON form.

        Keys are accepted both plain (``propertyName``) and underscore-prefixed
        (``_propertyName``). ``feature_type``/``feature_id`` override the values
        stored in ``data`` (used when the attribute is nested in its feature).

        Raises:
            ValueError: missing property name or non-integer date fields
        """

        def get(key: str) -> Any:
            if key in data:
                return data[key]
            return data.get("_" + key)

        name = get("propertyName")
        if name is None or str(name) == "":
            raise ValueError("Attribute without propertyName")
        kwargs = {field_name: get(key) for field_name, key in zip(_DATE_FIELDS, _DATE_KEYS)}
        return cls(
            feature_type=feature_type if feature_type is not None else get("featureType"),
            feature_id=feature_id if feature_id is not None else get("featureId"),
            property_name=str(name),
            property_value=get("propertyValue"),
            **kwargs,
        )


_DATE_FIELDS = ("from_year", "from_month", "from_day", "to_year", "to_month", "to_day")
_DATE_KEYS = ("fromYear", "fromMonth", "fromDay", "toYear", "toMonth", "toDay")


@dataclass(eq=False)
class Feature:
    """A geometry identified by ``(feature_type, id)``."""

    feature_type: FeatureType
    id: str
    coordinates: Any

    def __post_init__(self) -> None:
        self.feature_type = FeatureType.coerce(self.feature_type)
        self.id = str(self.id)

    @property
    def identity(self) -> Tuple[FeatureType, str]:
        return (self.feature_type, self.id)

    def positions(self) -> List[Any]:
        if self.feature_type == FeatureType.POINT:
            return [self.coordinates] if is_position(self.coordinates) else []
        if self.feature_type == FeatureType.LINESTRING:
            return list(self.coordinates or [])
        return [pos for ring in (self.coordinates or []) for pos in ring]

    def bounds(self) -> BoundingBox:
        return bounding_box(self.positions())

    def min_longitude(self) -> float:
        return self.bounds()[0]

    def min_latitude(self) -> float:
        return self.bounds()[1]

    def max_longitude(self) -> float:
        return self.bounds()[2]

    def max_latitude(self) -> float:
        return self.bounds()[3]

    def geodesic_length(self) -> float:
        """Length in km; 0 for points, sum of all rings for polygons."""
        if self.feature_type == FeatureType.LINESTRING:
            return path_length_km(list(self.coordinates or []))
        if self.feature_type == FeatureType.POLYGON:
            return sum(path_length_km(list(ring)) for ring in (self.coordinates or []))
        return 0.0

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": {
                "type": self.feature_type.geojson_name,
                "coordinates": self.coordinates,
            },
            "properties": {"id": self.id},
        }


@dataclass(eq=False)
class ExtendedFeature(Feature):
    """A feature together with its property cache and attribute history."""

    properties: Dict[str, Scalar] = field(default_factory=dict)
    attributes: List[FeatureAttribute] = field(default_factory=list)

    def add_property(self, name: str, value: Scalar) -> None:
        self.properties[name] = _scalar(value)

    def get_property_value(self, name: str) -> Scalar:
        return self.properties.get(name)

    def property_names(self) -> List[str]:
        return list(self.properties.keys())

    def clear_properties(self) -> None:
        self.properties = {}

    def add_attribute(self, attribute: FeatureAttribute) -> bool:
        if attribute.feature_key != self.identity:
            return False
        self.attributes.append(attribute)
        return True

    def get_attributes(
        self, predicate: Optional[Callable[[FeatureAttribute], bool]] = None
    ) -> List[FeatureAttribute]:
        if predicate is None:
            return list(self.attributes)
        return [a for a in self.attributes if predicate(a)]

    def attribute_names(self) -> List[str]:
        return list(dict.fromkeys(a.property_name for a in self.attributes))

    def clear_attributes(self) -> None:
        self.attributes = []

    def length(self) -> float:
        """The ``length`` property when set, else the geodesic length in km."""
        raw = self.properties.get("length")
        if raw:
            try:
                return float(raw)
            except (TypeError, ValueError):
                return self.geodesic_length()
        return self.geodesic_length()

    def name(self) -> str:
        value = self.properties.get("name")
        if value:
            return str(value)
        return self.id

    def matches(self, text: str) -> bool:
        needle = (text or "").lower()
        return any(
            needle in str(value).lower()
            for value in self.properties.values()
            if value is not None
        )

    def to_geojson(self, add_properties: bool = False, add_attributes: bool = False) -> Dict[str, Any]:
        ret = super().to_geojson()
        if add_properties:
            ret["properties"].update(self.properties)
        if add_attributes:
            ret["properties"][ATTRIBUTES_KEY] = [a.to_dict() for a in self.attributes]
        return ret

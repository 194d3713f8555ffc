"""
Display settings for features.

Settings exist on three levels:

- standard: one record per feature type, seeded by the store
- attribute: applies to features carrying an attribute ``name = value``
  (the level value ``HAS_CHANGED`` stands for "the value of this attribute
  changed inside the selected period")
- feature: applies to a single feature id

All records are frozen. A more specific record is layered over a less specific
one with ``specific.merge(general)``: every field defined on ``specific`` wins,
undefined (None) fields are taken from ``general``, nested borders, text
settings and style payloads are merged field by field. Colors are atomic.

The JSON form uses the camelCase keys of the exported settings files, with the
feature-type specific style fields flattened next to the common ones.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, Union

from histmap.model import FeatureType


STANDARD_LEVEL_NAME = "Standard"
STANDARD_LEVEL_VALUE = ""
HAS_CHANGED = "_iam_hasChanged"

LINE_CAP_VALUES = ("round", "butt", "square")
FONT_STYLE_VALUES = ("normal", "italic")
FONT_WEIGHT_VALUES = ("normal", "bold")
FONT_SIZE_TYPE_VALUES = ("pt", "em")
FONT_FAMILY_VALUES = ("Arial", "Verdana", "Calibri", "Times New Roman")
TEXT_ALIGN_VALUES = ("left", "right", "center", "end", "start")
TEXT_PLACEMENT_VALUES = ("point", "line")


class LevelType(IntEnum):
    STANDARD = 1
    ATTRIBUTE = 2
    FEATURE = 3


class PointShape(IntEnum):
    CIRCLE = 1
    POLYGON = 2
    STAR = 3


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _merge_value(current: Any, master: Any) -> Any:
    if current is None:
        return master
    if master is None:
        return current
    if isinstance(current, _Layered) and type(current) is type(master):
        return current.merge(master)
    return current


def _json_value(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, IntEnum):
        return int(value)
    return value


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int
    alpha: float = 1.0

    @classmethod
    def from_hex(cls, hex_value: str, alpha: float = 1.0) -> "Color":
        """Parse ``#rrggbb``."""
        text = hex_value.strip().lstrip("#")
        if len(text) != 6:
            raise ValueError(f"Invalid hex color: {hex_value!r}")
        return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16), float(alpha))

    @classmethod
    def from_dict(cls, data: Any) -> "Color":
        if isinstance(data, (list, tuple)):
            return cls.from_hex(str(data[0]), float(data[1]) if len(data) > 1 else 1.0)
        try:
            return cls(
                int(data["r"]),
                int(data["g"]),
                int(data["b"]),
                float(data.get("alpha", 1.0)),
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise ValueError(f"Invalid color: {data!r}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {"r": self.r, "g": self.g, "b": self.b, "alpha": self.alpha}

    def to_css_hex(self) -> str:
        return "#{:02X}{:02X}{:02X}".format(self.r, self.g, self.b)

    def to_rgba(self) -> str:
        return f"rgba({self.r},{self.g},{self.b},{self.alpha:g})"


BLACK = Color(0, 0, 0, 1)
LIGHT_GRAY = Color(200, 200, 200, 1)


class _Layered:
    """
    Mixin for frozen settings dataclasses.

    ``_types`` maps field names to the type a JSON value is converted into
    (nested records or enums). Fields listed in ``_fixed`` are never merged.
    """

    _types: ClassVar[Dict[str, type]] = {}
    _fixed: ClassVar[Tuple[str, ...]] = ()

    def merge(self, master: Any) -> Any:
        if master is None or type(master) is not type(self):
            return self
        changes: Dict[str, Any] = {}
        for f in fields(self):
            if f.name in self._fixed:
                continue
            mine = getattr(self, f.name)
            merged = _merge_value(mine, getattr(master, f.name))
            if merged is not mine:
                changes[f.name] = merged
        return replace(self, **changes) if changes else self

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[_camel(f.name)] = _json_value(value)
        return out

    @classmethod
    def _kwargs_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            value = data.get(_camel(f.name))
            if value is None:
                continue
            target = cls._types.get(f.name)
            if target is None or isinstance(value, target):
                kwargs[f.name] = value
            elif issubclass(target, IntEnum):
                kwargs[f.name] = target(int(value))
            elif target is Color:
                kwargs[f.name] = Color.from_dict(value)
            elif isinstance(value, dict):
                nested = target.from_dict(value)
                if not nested.is_empty():
                    kwargs[f.name] = nested
            else:
                raise ValueError(f"Invalid value for {_camel(f.name)}: {value!r}")
        return kwargs

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Any:
        return cls(**cls._kwargs_from_dict(data))


@dataclass(frozen=True)
class Border(_Layered):
    color: Optional[Color] = None
    width: Optional[float] = None
    line_dash1: Optional[int] = None
    line_dash2: Optional[int] = None
    line_dash3: Optional[int] = None
    line_dash4: Optional[int] = None
    line_dash_offset: Optional[int] = None
    line_cap: Optional[str] = None

    _types: ClassVar[Dict[str, type]] = {"color": Color}

    def __post_init__(self) -> None:
        if self.line_cap is not None and self.line_cap not in LINE_CAP_VALUES:
            raise ValueError(f"Invalid line cap: {self.line_cap!r}")

    def line_dash(self) -> List[int]:
        dashes = (self.line_dash1, self.line_dash2, self.line_dash3, self.line_dash4)
        return [d for d in dashes if d]


@dataclass(frozen=True)
class TextSettings(_Layered):
    text_fill_color: Optional[Color] = None
    text_border: Optional[Border] = None

    text_font_style: Optional[str] = None
    text_font_weight: Optional[str] = None
    text_font_size: Optional[float] = None
    text_font_size_type: Optional[str] = None
    text_font_family: Optional[str] = None
    text_font: Optional[str] = None

    text_offset_x: Optional[float] = None
    text_offset_y: Optional[float] = None
    text_rotation: Optional[float] = None
    text_align: Optional[str] = None
    text_placement: Optional[str] = None

    text_background_fill_color: Optional[Color] = None
    text_background_border: Optional[Border] = None
    text_background_padding_top: Optional[int] = None
    text_background_padding_right: Optional[int] = None
    text_background_padding_bottom: Optional[int] = None
    text_background_padding_left: Optional[int] = None

    text_max_angle: Optional[float] = None
    text_overflow: Optional[bool] = None
    text_repeat: Optional[int] = None

    _types: ClassVar[Dict[str, type]] = {
        "text_fill_color": Color,
        "text_border": Border,
        "text_background_fill_color": Color,
        "text_background_border": Border,
    }

    @classmethod
    def standard(cls) -> "TextSettings":
        return cls(
            text_fill_color=BLACK,
            text_font_style=FONT_STYLE_VALUES[0],
            text_font_weight=FONT_WEIGHT_VALUES[0],
            text_font_size=10,
            text_font_size_type=FONT_SIZE_TYPE_VALUES[0],
            text_font_family=FONT_FAMILY_VALUES[0],
            text_offset_y=10,
            text_overflow=True,
        )

    def font(self) -> str:
        """CSS font shorthand, e.g. ``"normal bold 10pt Arial"``."""
        if self.text_font:
            return self.text_font
        size = None
        if self.text_font_size is not None:
            size = f"{self.text_font_size:g}{self.text_font_size_type or ''}"
        parts = [self.text_font_style, self.text_font_weight, size, self.text_font_family]
        return " ".join(str(p) for p in parts if p)


@dataclass(frozen=True)
class PointSettings(_Layered):
    point_shape_type: Optional[PointShape] = None
    point_fill: Optional[Color] = None
    point_border: Optional[Border] = None
    point_radius: Optional[float] = None
    point_displacement_x: Optional[float] = None
    point_displacement_y: Optional[float] = None
    point_rotation: Optional[float] = None
    point_points: Optional[int] = None
    point_star_radius: Optional[float] = None

    _types: ClassVar[Dict[str, type]] = {
        "point_shape_type": PointShape,
        "point_fill": Color,
        "point_border": Border,
    }


@dataclass(frozen=True)
class LineStringSettings(_Layered):
    line_border1: Optional[Border] = None
    line_border2: Optional[Border] = None

    _types: ClassVar[Dict[str, type]] = {"line_border1": Border, "line_border2": Border}


@dataclass(frozen=True)
class PolygonSettings(_Layered):
    polygon_fill: Optional[Color] = None
    polygon_border: Optional[Border] = None

    _types: ClassVar[Dict[str, type]] = {"polygon_fill": Color, "polygon_border": Border}


StylePayload = Union[PointSettings, LineStringSettings, PolygonSettings]

SETTINGS_VARIANTS: Dict[FeatureType, Type[_Layered]] = {
    FeatureType.POINT: PointSettings,
    FeatureType.LINESTRING: LineStringSettings,
    FeatureType.POLYGON: PolygonSettings,
}


@dataclass(frozen=True)
class FeatureSettings(_Layered):
    """
    Settings common to all feature types plus the type specific ``style``.

    ``(feature_type, level_type, level_name, level_value)`` identifies a
    record; merging never touches these fields.
    """

    feature_type: FeatureType
    level_type: LevelType
    level_name: str
    level_value: Any = None
    show_feature: Optional[bool] = None
    show_text: Optional[bool] = None
    text_settings: Optional[TextSettings] = None
    style: Optional[StylePayload] = None

    _types: ClassVar[Dict[str, type]] = {
        "feature_type": FeatureType,
        "level_type": LevelType,
        "text_settings": TextSettings,
    }
    _fixed: ClassVar[Tuple[str, ...]] = ("feature_type", "level_type", "level_name", "level_value")

    def __post_init__(self) -> None:
        object.__setattr__(self, "feature_type", FeatureType.coerce(self.feature_type))
        object.__setattr__(self, "level_type", LevelType(int(self.level_type)))
        if self.level_type == LevelType.STANDARD:
            # One standard record per feature type, whatever name/value was read.
            object.__setattr__(self, "level_name", STANDARD_LEVEL_NAME)
            object.__setattr__(self, "level_value", STANDARD_LEVEL_VALUE)
        expected = SETTINGS_VARIANTS[self.feature_type]
        if self.style is not None and not isinstance(self.style, expected):
            raise ValueError(
                f"{type(self.style).__name__} does not match feature type "
                f"{self.feature_type.geojson_name}"
            )

    @property
    def identity(self) -> Tuple[Any, ...]:
        return (self.feature_type, self.level_type, self.level_name, self.level_value)

    @property
    def is_standard(self) -> bool:
        return self.level_type == LevelType.STANDARD

    @classmethod
    def for_attribute(
        cls, feature_type: FeatureType, name: str, value: Any, **kwargs: Any
    ) -> "FeatureSettings":
        return cls(feature_type, LevelType.ATTRIBUTE, name, value, **kwargs)

    @classmethod
    def for_has_changed(
        cls, feature_type: FeatureType, attribute_name: str, **kwargs: Any
    ) -> "FeatureSettings":
        return cls(feature_type, LevelType.ATTRIBUTE, attribute_name, HAS_CHANGED, **kwargs)

    @classmethod
    def for_feature(cls, feature_type: FeatureType, feature_id: str, **kwargs: Any) -> "FeatureSettings":
        return cls(feature_type, LevelType.FEATURE, str(feature_id), None, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "featureType": int(self.feature_type),
            "levelType": int(self.level_type),
            "levelName": self.level_name,
        }
        if self.level_value is not None:
            out["levelValue"] = self.level_value
        if self.show_feature is not None:
            out["showFeature"] = self.show_feature
        if self.show_text is not None:
            out["showText"] = self.show_text
        if self.text_settings is not None:
            out["textSettings"] = self.text_settings.to_dict()
        if self.style is not None:
            out.update(self.style.to_dict())
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeatureSettings":
        """
        Build settings from their JSON form, dispatching on ``featureType``.

        Raises:
            ValueError: unknown feature/level type or malformed nested values
        """
        if not isinstance(data, dict):
            raise ValueError(f"Settings must be an object, got {type(data).__name__}")
        raw_type = data.get("featureType", data.get("type"))
        if raw_type is None:
            raise ValueError("Settings without featureType")
        if data.get("levelType") is None or data.get("levelName") is None:
            raise ValueError("Settings without levelType/levelName")
        feature_type = FeatureType.coerce(raw_type)
        try:
            level_type = LevelType(int(data["levelType"]))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid levelType: {data['levelType']!r}") from e

        text = data.get("textSettings")
        style = SETTINGS_VARIANTS[feature_type].from_dict(data)
        return cls(
            feature_type=feature_type,
            level_type=level_type,
            level_name=str(data["levelName"]),
            level_value=data.get("levelValue"),
            show_feature=data.get("showFeature"),
            show_text=data.get("showText"),
            text_settings=TextSettings.from_dict(text) if isinstance(text, dict) else None,
            style=None if style.is_empty() else style,
        )


def standard_settings(feature_type: FeatureType) -> FeatureSettings:
    """The seeded standard settings for one feature type."""
    feature_type = FeatureType.coerce(feature_type)
    if feature_type == FeatureType.POINT:
        show_text = False
        style: StylePayload = PointSettings(
            point_shape_type=PointShape.CIRCLE,
            point_fill=LIGHT_GRAY,
            point_border=Border(color=BLACK, width=1),
            point_radius=5,
        )
    elif feature_type == FeatureType.LINESTRING:
        show_text = False
        style = LineStringSettings(line_border1=Border(color=BLACK, width=2))
    else:
        show_text = True
        style = PolygonSettings(polygon_fill=LIGHT_GRAY, polygon_border=Border(color=BLACK, width=1))
    return FeatureSettings(
        feature_type=feature_type,
        level_type=LevelType.STANDARD,
        level_name=STANDARD_LEVEL_NAME,
        level_value=STANDARD_LEVEL_VALUE,
        show_feature=True,
        show_text=show_text,
        text_settings=TextSettings.standard(),
        style=style,
    )

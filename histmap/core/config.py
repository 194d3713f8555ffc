"""
Configuration management for histmap.

Defaults can be overridden by a YAML file (``histmap_config.yaml`` in the
current directory, or a path given on the command line).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from histmap.core.aggregation import AGG_SUM, AGG_TYPES, COURSES, POINT_IN_TIME
from histmap.core.store import InsertType

DEFAULT_CONFIG_FILES = (Path("histmap_config.yaml"), Path("histmap_config.yml"))

_INSERT_TYPES = {"overwrite": InsertType.OVERWRITE, "droptable": InsertType.DROPTABLE}
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
CONFIG_KEYS = (
    "insert_type",
    "include_properties",
    "include_attributes",
    "include_settings",
    "export_properties",
    "export_attributes",
    "export_settings",
    "agg_type",
    "course",
    "csv_delimiter",
    "log_level",
)
_BOOL_KEYS = (
    "include_properties",
    "include_attributes",
    "include_settings",
    "export_properties",
    "export_attributes",
    "export_settings",
)


class HistMapConfig:
    """Load and export behaviour with user overrides."""

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_file: Optional path to user config YAML file
        """
        self.insert_type = InsertType.DROPTABLE
        self.include_properties = True
        self.include_attributes = True
        self.include_settings = True
        self.export_properties = True
        self.export_attributes = True
        self.export_settings = True
        self.agg_type = AGG_SUM
        self.course = POINT_IN_TIME
        self.csv_delimiter: Optional[str] = None
        self.log_level = "WARNING"
        self.source: Optional[Path] = None

        if config_file and Path(config_file).exists():
            self.load_user_config(Path(config_file))

    def load_user_config(self, config_file: Path) -> None:
        """
        Load user configuration from YAML file.

        Format:
        insert_type: droptable
        agg_type: count
        csv_delimiter: ";"

        Args:
            config_file: Path to YAML config file (.yaml or .yml)

        Raises:
            ValueError: invalid YAML or invalid values
        """
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                user_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ValueError(f"Error loading config file: {e}") from e

        self.apply(user_config if user_config is not None else {})
        self.source = config_file

    def apply(self, user_config: Dict[str, Any]) -> None:
        """Apply a parsed config mapping; raises ValueError on invalid values."""
        if not isinstance(user_config, dict):
            raise ValueError("Invalid config file: expected a mapping at top level")

        if "insert_type" in user_config:
            raw = str(user_config["insert_type"]).strip().lower()
            if raw not in _INSERT_TYPES:
                raise ValueError(f"Invalid insert_type '{raw}' (expected overwrite or droptable)")
            self.insert_type = _INSERT_TYPES[raw]

        for key in _BOOL_KEYS:
            if key in user_config:
                if not isinstance(user_config[key], bool):
                    raise ValueError(f"Invalid {key} {user_config[key]!r} (expected true or false)")
                setattr(self, key, user_config[key])

        if "agg_type" in user_config:
            if user_config["agg_type"] not in AGG_TYPES:
                raise ValueError(f"Invalid agg_type '{user_config['agg_type']}' (expected one of {AGG_TYPES})")
            self.agg_type = user_config["agg_type"]

        if "course" in user_config:
            if user_config["course"] not in COURSES:
                raise ValueError(f"Invalid course '{user_config['course']}' (expected one of {COURSES})")
            self.course = user_config["course"]

        if user_config.get("csv_delimiter"):
            delimiter = str(user_config["csv_delimiter"])
            if len(delimiter) != 1:
                raise ValueError(f"Invalid csv_delimiter '{delimiter}' (must be a single character)")
            self.csv_delimiter = delimiter

        if "log_level" in user_config:
            level = str(user_config["log_level"]).upper()
            if level not in _LOG_LEVELS:
                raise ValueError(f"Invalid log_level '{level}'")
            self.log_level = level

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)

    def export_template(self, output_path: Path) -> None:
        """Write a commented configuration template."""
        yaml_content = """# histmap configuration
#
# How loads replace existing data:
#   droptable  - start from an empty store for every load (default)
#   overwrite  - merge into the store, replacing records with the same identity
insert_type: droptable

# Which parts of a GeoJSON input are loaded
include_properties: true
include_attributes: true
include_settings: true

# Which parts are written on export
export_properties: true
export_attributes: true
export_settings: true

# Chart defaults: agg_type is sum (feature length) or count,
# course is "point in time" or "time interval"
agg_type: sum
course: point in time

# CSV delimiter; leave empty to detect (';' if present, else ',')
csv_delimiter:

# DEBUG, INFO, WARNING, ERROR
log_level: WARNING
"""
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(yaml_content)

    def get_config_summary(self) -> Dict[str, Any]:
        return {
            "source": str(self.source) if self.source else None,
            "insert_type": self.insert_type.name.lower(),
            "include_properties": self.include_properties,
            "include_attributes": self.include_attributes,
            "include_settings": self.include_settings,
            "export_properties": self.export_properties,
            "export_attributes": self.export_attributes,
            "export_settings": self.export_settings,
            "agg_type": self.agg_type,
            "course": self.course,
            "csv_delimiter": self.csv_delimiter,
            "log_level": self.log_level,
        }


def load_config(config_file: Optional[Path] = None) -> HistMapConfig:
    """
    Load configuration.

    Args:
        config_file: Optional path to a config file. If None, looks for
                    'histmap_config.yaml' (or .yml) in the current directory.

    Raises:
        ValueError: an explicitly given file does not exist or is invalid
    """
    if config_file is None:
        for candidate in DEFAULT_CONFIG_FILES:
            if candidate.exists():
                config_file = candidate
                break
    elif not Path(config_file).exists():
        raise ValueError(f"Config file not found: {config_file}")
    return HistMapConfig(config_file)


def save_setting(key: str, value: Any, config_path: Path = DEFAULT_CONFIG_FILES[0]) -> Path:
    """Persist one key into the YAML config file, validating the result first."""
    if key not in CONFIG_KEYS:
        raise ValueError(f"Unknown config key '{key}' (expected one of {CONFIG_KEYS})")
    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}") from e
    data[key] = value
    HistMapConfig().apply(data)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return config_path

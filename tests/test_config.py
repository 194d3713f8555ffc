"""Tests for histmap/core/config.py."""

from pathlib import Path

import pytest
import yaml

from histmap.core.config import HistMapConfig, load_config, save_setting
from histmap.core.store import InsertType


# ===== Defaults and loading =====


def test_defaults():
    """A config without a file uses the built-in defaults."""
    cfg = HistMapConfig()
    assert cfg.insert_type == InsertType.DROPTABLE
    assert cfg.agg_type == "sum"
    assert cfg.course == "point in time"
    assert cfg.csv_delimiter is None
    assert cfg.get_config_summary()["source"] is None


def test_load_user_config(tmp_path):
    """Values from the YAML file override the defaults."""
    path = tmp_path / "histmap_config.yaml"
    path.write_text(
        "insert_type: overwrite\nagg_type: count\ncourse: time interval\n"
        "csv_delimiter: '|'\nexport_settings: false\nlog_level: debug\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.insert_type == InsertType.OVERWRITE
    assert cfg.agg_type == "count"
    assert cfg.course == "time interval"
    assert cfg.csv_delimiter == "|"
    assert cfg.export_settings is False
    assert cfg.log_level == "DEBUG"
    assert cfg.get_config_summary()["source"] == str(path)


def test_empty_file_keeps_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path).insert_type == InsertType.DROPTABLE


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(ValueError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_default_file_in_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    Path("histmap_config.yaml").write_text("agg_type: count\n", encoding="utf-8")
    assert load_config().agg_type == "count"


# ===== Validation =====


@pytest.mark.parametrize(
    "content",
    [
        "insert_type: append\n",
        "agg_type: mean\n",
        "course: forever\n",
        "csv_delimiter: '::'\n",
        "log_level: LOUD\n",
        "include_settings: 'false'\n",
        "export_attributes: 1\n",
        "- just\n- a list\n",
        "insert_type: [unclosed\n",
    ],
)
def test_invalid_config_raises(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


# ===== Template and persistence =====


def test_export_template_is_valid_config(tmp_path):
    path = tmp_path / "template.yaml"
    HistMapConfig().export_template(path)
    cfg = load_config(path)
    assert cfg.insert_type == InsertType.DROPTABLE
    assert cfg.csv_delimiter is None


def test_save_setting(tmp_path):
    path = tmp_path / "histmap_config.yaml"
    save_setting("agg_type", "count", config_path=path)
    save_setting("include_settings", False, config_path=path)
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data == {"agg_type": "count", "include_settings": False}


def test_save_setting_rejects_invalid_values(tmp_path):
    path = tmp_path / "histmap_config.yaml"
    with pytest.raises(ValueError):
        save_setting("agg_type", "median", config_path=path)
    with pytest.raises(ValueError):
        save_setting("colour", "red", config_path=path)
    assert not path.exists()

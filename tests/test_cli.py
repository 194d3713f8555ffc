"""Integration tests for histmap CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from histmap.cli import app
from histmap.core.trace import TraceReader


runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


class TestCLI:
    """Integration tests for CLI commands."""

    def test_help(self):
        """--help works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "inspect" in result.stdout
        assert "chart" in result.stdout

    def test_inspect(self, sample_geojson_file):
        result = runner.invoke(app, ["inspect", str(sample_geojson_file)])
        assert result.exit_code == 0, result.output
        assert "Inventory" in result.stdout
        assert "Map loaded successfully!" in result.stdout
        assert "status" in result.stdout

    def test_inspect_missing_file(self, tmp_path):
        result = runner.invoke(app, ["inspect", str(tmp_path / "nope.geojson")])
        assert result.exit_code == 1
        assert "Unable to read features." in result.stdout

    def test_inspect_invalid_data(self, tmp_path):
        path = tmp_path / "broken.geojson"
        path.write_text("{oops", encoding="utf-8")
        result = runner.invoke(app, ["inspect", str(path)])
        assert result.exit_code == 1
        assert "no valid format" in result.stdout

    def test_search(self, sample_geojson_file):
        result = runner.invoke(app, ["search", str(sample_geojson_file), "chapel"])
        assert result.exit_code == 0, result.output
        assert "c1" in result.stdout
        assert "1 feature(s)" in result.stdout

    def test_search_no_match(self, sample_geojson_file):
        result = runner.invoke(app, ["search", str(sample_geojson_file), "castle"])
        assert result.exit_code == 0
        assert "No features match" in result.stdout

    def test_chart(self, sample_geojson_file):
        result = runner.invoke(
            app,
            ["chart", str(sample_geojson_file), "status", "planned", "open", "--agg", "count", "--from", "1899", "--to", "1911"],
        )
        assert result.exit_code == 0, result.output
        assert "1899" in result.stdout
        assert "1911" in result.stdout

    def test_chart_invalid_aggregation(self, sample_geojson_file):
        result = runner.invoke(app, ["chart", str(sample_geojson_file), "status", "open", "--agg", "mean"])
        assert result.exit_code == 1

    def test_chart_invalid_type(self, sample_geojson_file):
        result = runner.invoke(app, ["chart", str(sample_geojson_file), "status", "open", "--type", "Blob"])
        assert result.exit_code == 1

    def test_export_round_trip(self, tmp_path, sample_geojson_file):
        out = tmp_path / "out" / "export.geojson"
        result = runner.invoke(app, ["export", str(sample_geojson_file), str(out)])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["features"][-1]["id"] == "_iam_Settings"

        again = runner.invoke(app, ["inspect", str(out)])
        assert again.exit_code == 0, again.output

    def test_export_without_settings(self, tmp_path, sample_geojson_file):
        out = tmp_path / "plain.geojson"
        result = runner.invoke(app, ["export", str(sample_geojson_file), str(out), "--no-settings", "--no-attributes"])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert len(data["features"]) == 3
        assert all("_iamAttributes" not in f["properties"] for f in data["features"])

    def test_export_settings_only(self, tmp_path, sample_geojson_file):
        out = tmp_path / "settings.json"
        result = runner.invoke(app, ["export", str(sample_geojson_file), str(out), "--settings-only"])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert len(data["_iam_FeatureSettings"]) == 3

    def test_enhance(self, tmp_path, sample_geojson_file):
        osm = tmp_path / "osm.csv"
        osm.write_text("Type;Id;Name;longitude;latitude\nnew;n1;Well;8.01;47.01\n", encoding="utf-8")
        out = tmp_path / "enhanced.geojson"
        result = runner.invoke(app, ["enhance", str(sample_geojson_file), str(osm), str(out)])
        assert result.exit_code == 0, result.output
        ids = [f["id"] for f in json.loads(out.read_text(encoding="utf-8"))["features"]]
        assert "n1" in ids

    def test_trace_option(self, tmp_path, sample_geojson_file):
        trace_path = tmp_path / "logs" / "trace.jsonl"
        result = runner.invoke(app, ["--trace", str(trace_path), "inspect", str(sample_geojson_file)])
        assert result.exit_code == 0, result.output
        events = [e["event"] for e in TraceReader(trace_path)]
        assert events[0] == "run.start"
        assert "load.features" in events
        assert "input.geojson.feature" in events


class TestConfigCommands:
    def test_config_help(self):
        result = runner.invoke(app, ["config", "--help"])
        assert result.exit_code == 0

    def test_show(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "built-in defaults" in result.stdout

    def test_export_and_validate(self, tmp_path):
        result = runner.invoke(app, ["config", "export"])
        assert result.exit_code == 0
        assert Path("histmap_config.yaml").exists()
        result = runner.invoke(app, ["config", "validate", "histmap_config.yaml"])
        assert result.exit_code == 0
        assert "valid" in result.stdout

    def test_validate_invalid(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("agg_type: mean\n", encoding="utf-8")
        result = runner.invoke(app, ["config", "validate", str(bad)])
        assert result.exit_code == 1

    def test_set_value(self):
        result = runner.invoke(app, ["config", "set", "insert_type", "overwrite"])
        assert result.exit_code == 0, result.output
        result = runner.invoke(app, ["config", "show"])
        assert "overwrite" in result.stdout

    def test_global_config_option(self, tmp_path, sample_geojson_file):
        cfg = tmp_path / "custom.yaml"
        cfg.write_text("export_attributes: false\n", encoding="utf-8")
        out = tmp_path / "out.geojson"
        result = runner.invoke(app, ["--config", str(cfg), "export", str(sample_geojson_file), str(out)])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert all("_iamAttributes" not in f["properties"] for f in data["features"])

    def test_invalid_global_config(self, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "absent.yaml"), "config", "show"])
        assert result.exit_code == 1

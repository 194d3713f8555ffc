"""Settings-only JSON documents: ``{"_iam_FeatureSettings": [...], "_iam_MapSettings": {...}}``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from histmap.core.result import ProcessResult, Status
from histmap.io.base import FEATURE_SETTINGS_KEY, INVALID_DATA_TEXT, MAP_SETTINGS_KEY, DataSource


class FeatureSettingsJSONDataSource(DataSource):
    default_text = "Settings read successfully!"

    def __init__(
        self,
        raw_data: str,
        process_result: Optional[ProcessResult] = None,
        *,
        trace: Any = None,
    ):
        super().__init__(raw_data, process_result, trace=trace)
        try:
            data = json.loads(raw_data)
            if not isinstance(data, dict):
                raise ValueError("Expected a JSON object")
        except (TypeError, ValueError) as e:
            self.process_result.fail(INVALID_DATA_TEXT, str(e))
            return

        if data.get(FEATURE_SETTINGS_KEY) is not None:
            counter = self._read_settings(data[FEATURE_SETTINGS_KEY])
            self.process_result.add_detail(Status.INFO, f"{counter} Settings loaded successfully")
        if isinstance(data.get(MAP_SETTINGS_KEY), dict):
            self._map_settings = data[MAP_SETTINGS_KEY]
            self.process_result.add_detail(Status.INFO, "Map Settings loaded successfully")
        self._emit({"event": "input.settings_json", "settings": len(self._settings)})


def settings_document(store: Any, map_settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return store.get_settings_as_object(map_settings)


def write_settings_json(
    store: Any, path: str | Path, map_settings: Optional[Dict[str, Any]] = None
) -> Path:
    out = Path(path)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(settings_document(store, map_settings), f, ensure_ascii=False, indent=2)
    return out

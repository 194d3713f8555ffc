"""
Common contract of all data sources.

A data source is built from the raw text of one file and exposes the records
it contains. Building one never raises for malformed content: problems with a
single record are added to the process result as warnings and the record is
skipped; an unreadable payload replaces the summary text and adds an error.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from histmap.core.result import ProcessResult, Status
from histmap.core.settings import FeatureSettings
from histmap.model import ExtendedFeature, FeatureAttribute, FeatureProperty

SETTINGS_FEATURE_ID = "_iam_Settings"
FEATURE_SETTINGS_KEY = "_iam_FeatureSettings"
MAP_SETTINGS_KEY = "_iam_MapSettings"

INVALID_DATA_TEXT = "Data has no valid format. No features were loaded."
INVALID_FILE_TEXT = "File has no valid format. No data was loaded."


class DataSource:
    default_text = "Data read successfully!"

    def __init__(
        self,
        raw_data: str,
        process_result: Optional[ProcessResult] = None,
        *,
        trace: Any = None,
    ):
        self.raw_data = raw_data
        self.process_result = (
            process_result if process_result is not None else ProcessResult(text=self.default_text)
        )
        self._trace = trace
        self._features: List[ExtendedFeature] = []
        self._properties: List[FeatureProperty] = []
        self._attributes: List[FeatureAttribute] = []
        self._settings: List[FeatureSettings] = []
        self._map_settings: Optional[Dict[str, Any]] = None

    def get_features(self) -> List[ExtendedFeature]:
        return self._features

    def get_features_properties(self) -> List[FeatureProperty]:
        return self._properties

    def get_features_attributes(self) -> List[FeatureAttribute]:
        return self._attributes

    def get_features_settings(self) -> List[FeatureSettings]:
        return self._settings

    def get_map_settings(self) -> Optional[Dict[str, Any]]:
        return self._map_settings

    def _emit(self, event: Dict[str, Any]) -> None:
        if self._trace is not None:
            self._trace.emit(event)

    def _read_settings(self, entries: Any) -> int:
        """Parse a list of settings objects; invalid entries are skipped with a warning."""
        if not isinstance(entries, list):
            self.process_result.add_detail(
                Status.WARN, f"WARNING: Unable to load settings: expected a list, found {type(entries).__name__}"
            )
            return 0
        counter = 0
        for entry in entries:
            try:
                self._settings.append(FeatureSettings.from_dict(entry))
                counter += 1
            except (KeyError, TypeError, ValueError) as e:
                self.process_result.add_detail(Status.WARN, f"WARNING: Unable to load settings due to {e}")
        return counter

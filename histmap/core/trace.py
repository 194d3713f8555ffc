"""
Machine-parseable tracing of loads and exports.

Trace files are JSON Lines (one JSON object per line), meant for replay and
diffing rather than for reading. Adapters and store loaders accept any object
with an ``emit(event: dict)`` method.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List


def _default(o: Any) -> Any:
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)
    if isinstance(o, Enum):
        return o.name
    return str(o)


class TraceWriter:
    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._fh = self._path.open("w", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, event: Dict[str, Any]) -> None:
        if "ts" not in event:
            event = dict(event)
            event["ts"] = datetime.now(timezone.utc).isoformat()
        self._fh.write(json.dumps(event, ensure_ascii=False, default=_default) + "\n")
        self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> "TraceWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MemoryTrace:
    """Collects events in a list; handy for tests and for the CLI summary."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def emit(self, event: Dict[str, Any]) -> None:
        self.events.append(dict(event))

    def of(self, name: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("event") == name]


class TraceReader:
    def __init__(self, path: str | Path):
        self._path = Path(path)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        with self._path.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                yield json.loads(line)

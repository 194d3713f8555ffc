"""Outcome accumulator for load operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class Status(IntEnum):
    INFO = 1
    WARN = 2
    ERROR = 3


_LOG_LEVELS = {
    Status.INFO: logging.INFO,
    Status.WARN: logging.WARNING,
    Status.ERROR: logging.ERROR,
}

WITH_WARNINGS = " with warnings"


@dataclass
class ProcessDetail:
    status: Status
    text: str


@dataclass
class ProcessResult:
    """
    Summary of a (multi step) load.

    The status only ever gets worse; the summary text gets a " with warnings"
    suffix the first time the status is raised to WARN.
    """

    status: Status = Status.INFO
    text: str = ""
    details: List[ProcessDetail] = field(default_factory=list)

    def add_detail(self, status: Status, text: str) -> None:
        status = Status(status)
        if status > self.status:
            self.status = status
            if status == Status.WARN:
                self.text = self.text + WITH_WARNINGS
        self.details.append(ProcessDetail(status, text))
        logger.log(_LOG_LEVELS[status], text)

    def info(self, text: str) -> None:
        self.add_detail(Status.INFO, text)

    def warn(self, text: str) -> None:
        self.add_detail(Status.WARN, text)

    def fail(self, text: str, detail: str) -> None:
        """Replace the summary and record an ERROR detail."""
        self.text = text
        self.add_detail(Status.ERROR, detail)

    @property
    def ok(self) -> bool:
        return self.status < Status.ERROR

    def warnings(self) -> List[str]:
        return [d.text for d in self.details if d.status == Status.WARN]

    def errors(self) -> List[str]:
        return [d.text for d in self.details if d.status == Status.ERROR]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.name,
            "text": self.text,
            "details": [{"status": d.status.name, "text": d.text} for d in self.details],
        }

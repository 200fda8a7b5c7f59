from __future__ import annotations

from enum import Enum


class NodeKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class ScanErrorCode(str, Enum):
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    NOT_DIRECTORY = "not_directory"
    ROOT_STAT_FAILED = "root_stat_failed"
    INTERNAL = "internal"


class EventType(str, Enum):
    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self is not EventType.PROGRESS

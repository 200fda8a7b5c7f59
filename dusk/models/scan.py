from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from result import Result

from dusk.models.enums import EventType, NodeKind, ScanErrorCode

ChangeCallback = Callable[[], None]


@dataclass(slots=True)
class Node:
    """One filesystem entry in a scan tree.

    ``children`` is ``None`` for files and for directories that were never
    expanded (depth cutoff or listing failure); an empty list means the
    directory was read and had nothing in it.
    """

    name: str
    path: str
    size: int
    kind: NodeKind
    extension: str | None = None
    children: list[Node] | None = None
    truncated: bool = False

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @classmethod
    def file(cls, path: str, name: str, size: int) -> Node:
        return cls(
            name=name,
            path=path,
            size=size,
            kind=NodeKind.FILE,
            extension=file_extension(name),
        )

    @classmethod
    def directory(cls, path: str, name: str) -> Node:
        return cls(name=name, path=path, size=0, kind=NodeKind.DIRECTORY)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "type": self.kind.value,
        }
        if self.extension is not None:
            payload["extension"] = self.extension
        if self.children is not None:
            payload["children"] = [child.to_dict() for child in self.children]
        if self.truncated:
            payload["truncated"] = True
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Node:
        children_raw = payload.get("children")
        return cls(
            name=str(payload["name"]),
            path=str(payload["path"]),
            size=int(payload["size"]),
            kind=NodeKind(str(payload["type"])),
            extension=payload.get("extension"),
            children=[cls.from_dict(child) for child in children_raw] if children_raw is not None else None,
            truncated=bool(payload.get("truncated", False)),
        )


def file_extension(name: str) -> str | None:
    """Lowercase suffix with its leading dot, or ``None`` (dotfiles have none)."""
    idx = name.rfind(".")
    if idx <= 0 or idx == len(name) - 1:
        return None
    return name[idx:].lower()


@dataclass(slots=True)
class ScanProgress:
    dirs_found: int = 1
    dirs_completed: int = 0

    def copy(self) -> ScanProgress:
        return ScanProgress(self.dirs_found, self.dirs_completed)

    def to_dict(self) -> dict[str, int]:
        return {"dirsFound": self.dirs_found, "dirsCompleted": self.dirs_completed}


@dataclass(slots=True, frozen=True)
class ScanError:
    code: ScanErrorCode
    path: str
    message: str


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    tree: Node
    progress: ScanProgress
    type: EventType = EventType.PROGRESS

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "tree": self.tree.to_dict(), "progress": self.progress.to_dict()}


@dataclass(slots=True, frozen=True)
class DoneEvent:
    tree: Node
    type: EventType = EventType.DONE

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "tree": self.tree.to_dict()}


@dataclass(slots=True, frozen=True)
class ErrorEvent:
    message: str
    type: EventType = EventType.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "error": self.message}


ScanEvent = ProgressEvent | DoneEvent | ErrorEvent
ScanListener = Callable[[ScanEvent], None]
RootResult = Result[str, ScanError]

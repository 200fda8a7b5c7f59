from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# (json_key, attr_name, minimum): shared by from_dict and host override clamping.
_INT_FIELDS: tuple[tuple[str, str, int], ...] = (
    ("maxDepth", "max_depth", 1),
    ("concurrency", "concurrency", 1),
    ("childLimitDepth", "child_limit_depth", 0),
    ("maxChildren", "max_children", 1),
    ("tickIntervalMs", "tick_interval_ms", 10),
    ("estimatorTimeoutS", "estimator_timeout_s", 1),
)


def clamp_field(value: int, field_name: str) -> int:
    """Clamp *value* to the minimum defined for *field_name* in _INT_FIELDS."""
    for _, attr, minimum in _INT_FIELDS:
        if attr == field_name:
            return max(minimum, value)
    return value


def _get_int(data: dict[str, Any], json_key: str, default: int, minimum: int) -> int:
    return max(minimum, int(data.get(json_key, default)))


@dataclass(slots=True)
class ScanConfig:
    max_depth: int = 8
    concurrency: int = 64
    child_limit_depth: int = 2
    max_children: int = 30
    tick_interval_ms: int = 500
    estimator_timeout_s: int = 300

    @property
    def tick_interval(self) -> float:
        return self.tick_interval_ms / 1000

    def to_dict(self) -> dict[str, Any]:
        return {json_key: getattr(self, attr) for json_key, attr, _ in _INT_FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any], defaults: ScanConfig) -> ScanConfig:
        int_kwargs: dict[str, int] = {}
        for json_key, attr, minimum in _INT_FIELDS:
            int_kwargs[attr] = _get_int(data, json_key, getattr(defaults, attr), minimum)
        return cls(**int_kwargs)

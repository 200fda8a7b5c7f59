from __future__ import annotations

_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    value = float(size)
    idx = 0
    while value >= 1024 and idx < len(_UNITS) - 1:
        value /= 1024
        idx += 1
    if idx == 0:
        return f"{size} B"
    return f"{value:.1f} {_UNITS[idx]}"

from __future__ import annotations

from dusk.config.schema import ScanConfig


def default_config() -> ScanConfig:
    return ScanConfig()

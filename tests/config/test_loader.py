from __future__ import annotations

import json
from pathlib import Path

from result import Err, Ok

from dusk.config.loader import load_config, sample_config_json


def test_load_config_missing_uses_defaults(tmp_path: Path) -> None:
    result = load_config(tmp_path / "missing.json")
    assert isinstance(result, Ok)
    assert result.unwrap().max_depth == 8


def test_load_config_invalid_returns_warning(tmp_path: Path) -> None:
    p = tmp_path / "config.json"
    p.write_text("not-json", encoding="utf-8")

    result = load_config(p)
    assert isinstance(result, Err)
    assert "failed reading config" in result.unwrap_err().lower()


def test_load_config_non_object(tmp_path: Path) -> None:
    p = tmp_path / "config.json"
    p.write_text("[1, 2]", encoding="utf-8")

    result = load_config(p)
    assert isinstance(result, Err)
    assert "must be a json object" in result.unwrap_err().lower()


def test_load_config_overrides(tmp_path: Path) -> None:
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"maxDepth": 4, "tickIntervalMs": 100}), encoding="utf-8")

    cfg = load_config(p).unwrap()
    assert cfg.max_depth == 4
    assert cfg.tick_interval_ms == 100
    assert cfg.max_children == 30


def test_sample_config_loads_back(tmp_path: Path) -> None:
    p = tmp_path / "config.json"
    p.write_text(sample_config_json(), encoding="utf-8")

    result = load_config(p)
    assert isinstance(result, Ok)
    assert result.unwrap().concurrency == 64

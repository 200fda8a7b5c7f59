from __future__ import annotations

import asyncio
import shutil
import time
from pathlib import Path

import pytest

from dusk.scan import estimator
from dusk.scan.cancel import CancelToken
from dusk.scan.estimator import fast_dir_size, parse_du_output
from tests.factories import write_file

needs_du = pytest.mark.skipif(shutil.which("du") is None, reason="du not available")
needs_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="sh not available")

# `sh -c "exec sleep 30" sh <path>`: ignores the path argument and hangs.
_HANG = ("sh", "-c", "exec sleep 30", "sh")


class TestParse:
    def test_kilobytes_to_bytes(self) -> None:
        assert parse_du_output("12\t/some/dir\n") == 12 * 1024

    def test_garbage(self) -> None:
        assert parse_du_output("du: cannot read") == 0

    def test_empty(self) -> None:
        assert parse_du_output("") == 0


@needs_du
def test_real_directory_has_size(tmp_path: Path) -> None:
    write_file(tmp_path / "data.bin", 64 * 1024)
    assert asyncio.run(fast_dir_size(str(tmp_path))) > 0


@needs_du
def test_missing_directory_is_zero(tmp_path: Path) -> None:
    assert asyncio.run(fast_dir_size(str(tmp_path / "gone"))) == 0


def test_missing_command_is_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(estimator, "DU_COMMAND", ("dusk-no-such-command-xyz",))
    assert asyncio.run(fast_dir_size(str(tmp_path))) == 0


def test_already_cancelled_is_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(estimator, "DU_COMMAND", _HANG)

    async def run() -> int:
        token = CancelToken()
        token.cancel()
        return await fast_dir_size(str(tmp_path), token)

    started = time.monotonic()
    assert asyncio.run(run()) == 0
    assert time.monotonic() - started < 5


@needs_sh
def test_timeout_is_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(estimator, "DU_COMMAND", _HANG)
    started = time.monotonic()
    assert asyncio.run(fast_dir_size(str(tmp_path), timeout=0.2)) == 0
    assert time.monotonic() - started < 10


@needs_sh
def test_cancel_terminates_process(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(estimator, "DU_COMMAND", _HANG)

    async def run() -> int:
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.1, token.cancel)
        return await fast_dir_size(str(tmp_path), token)

    started = time.monotonic()
    assert asyncio.run(run()) == 0
    assert time.monotonic() - started < 10

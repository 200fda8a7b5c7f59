from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from loguru import logger

from dusk.scan.cancel import CancelToken

# Invoked as ``DU_COMMAND + (path,)``; output is "<kilobytes>\t<path>".
DU_COMMAND: tuple[str, ...] = ("du", "-sk")
DEFAULT_TIMEOUT_S = 300.0
_REAP_TIMEOUT_S = 5.0


def parse_du_output(text: str) -> int:
    """Return the byte size reported by ``du -sk``, or 0 if unparsable."""
    head = text.split("\t", 1)[0].strip()
    try:
        kb = int(head)
    except ValueError:
        return 0
    return max(0, kb) * 1024


def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()


async def fast_dir_size(
    path: str,
    cancel: CancelToken | None = None,
    timeout: float = DEFAULT_TIMEOUT_S,
) -> int:
    """Total recursive size of *path* using the native disk-usage tool.

    Never raises for filesystem or process problems: a failed, timed-out or
    cancelled estimate is 0.  Cancellation kills the subprocess.
    """
    if cancel is not None and cancel.cancelled:
        return 0
    try:
        proc = await asyncio.create_subprocess_exec(
            *DU_COMMAND,
            path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        logger.debug("size estimate for {} could not start: {}", path, exc)
        return 0

    communicate = asyncio.ensure_future(proc.communicate())
    waiters: set[asyncio.Future[Any]] = {communicate}
    stop = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
    if stop is not None:
        waiters.add(stop)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        _terminate(proc)
        raise
    finally:
        if stop is not None:
            stop.cancel()

    if communicate not in done:
        reason = "cancelled" if cancel is not None and cancel.cancelled else "timed out"
        logger.debug("size estimate for {} {}", path, reason)
        _terminate(proc)
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(communicate, _REAP_TIMEOUT_S)
        return 0

    stdout, _ = communicate.result()
    if proc.returncode != 0:
        logger.debug("size estimate for {} exited with {}", path, proc.returncode)
        return 0
    if cancel is not None and cancel.cancelled:
        return 0
    return parse_du_output(stdout.decode(errors="replace"))

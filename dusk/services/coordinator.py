# Single-flight scan coordinator.
#
# A coordinator owns at most one active scan.  Requesting the path (and depth) that is
# already running (or finished cleanly) attaches to it; any other request
# cancels the running scan and starts a new one.  The scan runs as a
# background task independent of any subscriber: unsubscribing never stops
# it, and a superseded scan simply goes silent.
#
# Lifecycle (_run):
#   1. Validate the root, create an empty root Node and start TreeWalker.fill.
#   2. Every tick, if the walker changed the tree, publish a snapshot with the
#      current counters as a progress event.
#   3. On completion publish one done event with the settled tree; on an
#      unexpected failure publish one error event.  Cancelled scans publish
#      nothing further.

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

from loguru import logger
from result import Err, Ok, Result

from dusk.config.defaults import default_config
from dusk.config.schema import ScanConfig
from dusk.models.enums import ScanErrorCode
from dusk.models.scan import (
    DoneEvent,
    ErrorEvent,
    Node,
    ProgressEvent,
    ScanError,
    ScanEvent,
    ScanListener,
    ScanProgress,
)
from dusk.scan import CancelToken, TreeWalker, create_walker, resolve_root
from dusk.scan._base import node_name, normalize_path
from dusk.services.formatting import format_bytes
from dusk.services.tree import copy_tree, snapshot


def _unsubscribed() -> None:
    return None


def _private_copy(event: ScanEvent) -> ScanEvent:
    """Give each listener its own tree so one consumer's edits never reach another."""
    if isinstance(event, ProgressEvent):
        return ProgressEvent(tree=copy_tree(event.tree), progress=event.progress.copy())
    if isinstance(event, DoneEvent):
        return DoneEvent(tree=copy_tree(event.tree))
    return event


def _deliver(listener: ScanListener, event: ScanEvent) -> None:
    try:
        listener(_private_copy(event))
    except Exception:  # noqa: BLE001
        logger.exception("scan listener failed on {} event", event.type.value)


@dataclass(slots=True, eq=False)
class ScanHandle:
    """State of one scan, shared by everyone observing it."""

    path: str
    cancel: CancelToken
    max_depth: int
    tree: Node | None = None
    progress: ScanProgress | None = None
    done: bool = False
    error: str | None = None
    error_code: ScanErrorCode | None = None
    _listeners: list[ScanListener] = field(default_factory=list)
    _task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return not self.done and not self.cancel.cancelled

    def current_event(self) -> ScanEvent | None:
        if self.error is not None:
            return ErrorEvent(self.error)
        if self.done and self.tree is not None:
            return DoneEvent(self.tree)
        if self.tree is not None and self.progress is not None:
            return ProgressEvent(self.tree, self.progress.copy())
        return None

    def subscribe(self, listener: ScanListener) -> Callable[[], None]:
        """Register *listener* and replay the current state to it.

        A listener attaching to a finished scan receives only the terminal
        event.  Returns a callable that unregisters the listener.
        """
        current = self.current_event()
        if current is not None and current.type.terminal:
            _deliver(listener, current)
            return _unsubscribed

        self._listeners.append(listener)
        if current is not None:
            _deliver(listener, current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def events(self) -> AsyncIterator[ScanEvent]:
        """Yield this scan's events, ending after ``done`` or ``error``."""
        queue: asyncio.Queue[ScanEvent] = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.type.terminal:
                    return
        finally:
            unsubscribe()

    async def wait(self) -> None:
        """Wait for the background task, whether it finished or was superseded."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def _broadcast(self, event: ScanEvent) -> None:
        listeners = list(self._listeners)
        if event.type.terminal:
            self._listeners.clear()
        for listener in listeners:
            _deliver(listener, event)


class ScanCoordinator:
    def __init__(self, config: ScanConfig | None = None, walker: TreeWalker | None = None) -> None:
        self._config = config if config is not None else default_config()
        self._walker = walker if walker is not None else create_walker(self._config)
        self._active: ScanHandle | None = None
        # Number of walkers started; lets hosts and tests observe single-flight behaviour.
        self.scans_started = 0

    @property
    def config(self) -> ScanConfig:
        return self._config

    @property
    def active(self) -> ScanHandle | None:
        return self._active

    async def start_scan(self, path: str, max_depth: int | None = None) -> Result[ScanHandle, ScanError]:
        """Validate *path*, then begin or attach to a scan of it."""
        resolved = await resolve_root(path)
        if isinstance(resolved, Err):
            return resolved
        return Ok(self.request_scan(resolved.ok_value, max_depth))

    def request_scan(self, path: str, max_depth: int | None = None) -> ScanHandle:
        """Begin a scan of *path* unless one is already running or finished cleanly.

        A scan of the same path with a different *max_depth* counts as a new
        scan.  Must be called from a running event loop; an invalid root is
        reported through an error event.
        """
        path = normalize_path(path)
        depth = max_depth if max_depth is not None else self._config.max_depth
        scan = self._active
        if (
            scan is not None
            and scan.path == path
            and scan.max_depth == depth
            and scan.error is None
            and not scan.cancel.cancelled
        ):
            return scan

        if scan is not None and scan.running:
            logger.info("superseding scan of {} with {}", scan.path, path)
            scan.cancel.cancel()

        scan = ScanHandle(path=path, cancel=CancelToken(), max_depth=depth)
        self._active = scan
        self.scans_started += 1
        scan._task = asyncio.get_running_loop().create_task(self._run(scan), name=f"dusk-scan:{path}")
        return scan

    def subscribe(self, listener: ScanListener) -> Callable[[], None]:
        """Subscribe to the active scan; see ``ScanHandle.subscribe``."""
        if self._active is None:
            msg = "No scan has been requested"
            raise RuntimeError(msg)
        return self._active.subscribe(listener)

    async def expand_subtree(self, path: str, max_depth: int | None = None) -> Result[Node, ScanError]:
        """One-shot scan of a single directory, independent of the active scan."""
        resolved = await resolve_root(path)
        if isinstance(resolved, Err):
            return resolved
        depth = max_depth if max_depth is not None else self._config.max_depth
        return Ok(await self._walker.walk(resolved.ok_value, depth))

    async def shutdown(self) -> None:
        scan = self._active
        if scan is None:
            return
        scan.cancel.cancel()
        await scan.wait()

    def _snapshot(self, root: Node) -> Node:
        return snapshot(root, self._config.child_limit_depth, self._config.max_children)

    async def _run(self, scan: ScanHandle) -> None:
        resolved = await resolve_root(scan.path)
        if isinstance(resolved, Err):
            self._fail(scan, resolved.err_value.code, resolved.err_value.message)
            return

        started = time.monotonic()
        logger.info("scan started: {} (max depth {})", scan.path, scan.max_depth)
        root = Node.directory(scan.path, node_name(scan.path))
        progress = ScanProgress()
        dirty = False

        def mark_dirty() -> None:
            nonlocal dirty
            dirty = True

        fill = asyncio.ensure_future(
            self._walker.fill(root, scan.max_depth, 0, mark_dirty, progress, scan.cancel)
        )
        try:
            while not fill.done():
                await asyncio.wait({fill}, timeout=self._config.tick_interval)
                if scan.cancel.cancelled:
                    break
                if dirty and not fill.done():
                    dirty = False
                    scan.tree = self._snapshot(root)
                    scan.progress = progress.copy()
                    logger.debug(
                        "scan tick {}: {}/{} dirs", scan.path, progress.dirs_completed, progress.dirs_found
                    )
                    scan._broadcast(ProgressEvent(scan.tree, scan.progress.copy()))
            await fill
        except Exception as exc:  # noqa: BLE001
            if scan.cancel.cancelled:
                return
            logger.exception("scan of {} failed", scan.path)
            self._fail(scan, ScanErrorCode.INTERNAL, str(exc) or type(exc).__name__)
            return
        finally:
            if not fill.done():
                fill.cancel()

        if scan.cancel.cancelled:
            logger.info("scan cancelled: {}", scan.path)
            return

        scan.tree = self._snapshot(root)
        scan.progress = progress.copy()
        scan.done = True
        logger.info(
            "scan finished: {} ({}, {} dirs) in {:.2f}s",
            scan.path,
            format_bytes(scan.tree.size),
            progress.dirs_completed,
            time.monotonic() - started,
        )
        scan._broadcast(DoneEvent(scan.tree))

    def _fail(self, scan: ScanHandle, code: ScanErrorCode, message: str) -> None:
        if scan.cancel.cancelled:
            return
        logger.warning("scan of {} finished with error: {}", scan.path, message)
        scan.error = message
        scan.error_code = code
        scan.done = True
        scan._broadcast(ErrorEvent(message))

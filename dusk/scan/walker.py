# Concurrent directory walker.
#
# Every entry of a directory is dispatched at once and awaited as a group;
# recursion into subdirectories fans out the same way.  The shared
# ConcurrencyLimiter is the only throttle: each readdir, stat and size
# estimate holds one slot for the duration of the system call.
#
# Tree mutation (appending children, writing sizes, bumping counters) happens
# on the event loop between awaits, so the working tree needs no lock.  Only
# the walker writes to it; snapshots are taken by the coordinator between
# ticks.  Filesystem errors are skipped, never raised; only cancellation
# stops a walk early, leaving a partial but consistent tree.

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass

import aiofiles.os
from loguru import logger

from dusk.models.enums import NodeKind
from dusk.models.scan import ChangeCallback, Node, ScanProgress
from dusk.scan._base import node_name
from dusk.scan.cancel import CancelToken
from dusk.scan.estimator import DEFAULT_TIMEOUT_S, fast_dir_size
from dusk.scan.limiter import ConcurrencyLimiter
from dusk.services.tree import fold_children


@dataclass(slots=True, frozen=True)
class _Entry:
    name: str
    path: str
    kind: NodeKind


def _read_dir(path: str) -> list[_Entry]:
    """List *path*, dropping symlinks and special files (runs in a worker thread)."""
    entries: list[_Entry] = []
    with os.scandir(path) as it:
        for entry in it:
            try:
                if entry.is_symlink():
                    continue
                if entry.is_dir(follow_symlinks=False):
                    kind = NodeKind.DIRECTORY
                elif entry.is_file(follow_symlinks=False):
                    kind = NodeKind.FILE
                else:
                    continue
            except OSError:
                continue
            entries.append(_Entry(entry.name, entry.path, kind))
    return entries


def _is_cancelled(cancel: CancelToken | None) -> bool:
    return cancel is not None and cancel.cancelled


class TreeWalker:
    def __init__(
        self,
        limiter: ConcurrencyLimiter,
        *,
        child_limit_depth: int = 2,
        max_children: int = 30,
        estimator_timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._limiter = limiter
        self._child_limit_depth = child_limit_depth
        self._max_children = max_children
        self._estimator_timeout = estimator_timeout

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    async def list_dir(self, path: str, cancel: CancelToken | None = None) -> list[_Entry] | None:
        """List *path* under a limiter slot; ``None`` if cancelled while queued."""
        async with self._limiter.slot():
            if _is_cancelled(cancel):
                return None
            return await asyncio.get_running_loop().run_in_executor(None, _read_dir, path)

    async def file_size(self, path: str, cancel: CancelToken | None = None) -> int | None:
        async with self._limiter.slot():
            if _is_cancelled(cancel):
                return None
            st = await aiofiles.os.stat(path)
        return st.st_size

    async def estimate_size(self, path: str, cancel: CancelToken | None = None) -> int:
        async with self._limiter.slot():
            return await fast_dir_size(path, cancel, timeout=self._estimator_timeout)

    # -- one-shot ---------------------------------------------------------

    async def walk(
        self,
        path: str,
        max_depth: int,
        depth: int = 0,
        cancel: CancelToken | None = None,
    ) -> Node:
        """Build and return the complete tree below *path*.

        Used for isolated re-scans of one subtree.  An unreadable directory
        comes back as an empty zero-size node; an unstattable file is dropped.
        """
        node = Node.directory(path, node_name(path))
        if _is_cancelled(cancel):
            return node

        if depth >= max_depth:
            node.truncated = True
            node.size = await self.estimate_size(path, cancel)
            return node

        try:
            entries = await self.list_dir(path, cancel)
        except OSError as exc:
            logger.debug("cannot list {}: {}", path, exc)
            return node
        if entries is None:
            return node

        results = await asyncio.gather(*(self._walk_entry(entry, max_depth, depth, cancel) for entry in entries))
        children = [child for child in results if child is not None]
        children.sort(key=lambda child: child.size, reverse=True)
        if depth >= self._child_limit_depth:
            children = fold_children(children, path, self._max_children)
        node.children = children
        node.size = sum(child.size for child in children)
        return node

    async def _walk_entry(
        self,
        entry: _Entry,
        max_depth: int,
        depth: int,
        cancel: CancelToken | None,
    ) -> Node | None:
        if entry.kind is NodeKind.DIRECTORY:
            return await self.walk(entry.path, max_depth, depth + 1, cancel)
        try:
            size = await self.file_size(entry.path, cancel)
        except OSError:
            return None
        if size is None:
            return None
        return Node.file(entry.path, entry.name, size)

    # -- incremental ------------------------------------------------------

    async def fill(
        self,
        node: Node,
        max_depth: int,
        depth: int,
        on_change: ChangeCallback,
        progress: ScanProgress,
        cancel: CancelToken | None = None,
    ) -> None:
        """Expand *node* in place, appending children as their I/O settles.

        ``progress.dirs_found`` grows as soon as subdirectories are listed;
        ``progress.dirs_completed`` once a directory's entries have all
        settled.  *on_change* fires after every mutation a snapshot could see.
        """
        if _is_cancelled(cancel):
            return

        if depth >= max_depth:
            node.truncated = True
            node.size = await self.estimate_size(node.path, cancel)
            progress.dirs_completed += 1
            on_change()
            return

        try:
            entries = await self.list_dir(node.path, cancel)
        except OSError as exc:
            logger.debug("cannot list {}: {}", node.path, exc)
            progress.dirs_completed += 1
            return

        if entries is None or _is_cancelled(cancel):
            return

        children: list[Node] = []
        node.children = children
        progress.dirs_found += sum(1 for entry in entries if entry.kind is NodeKind.DIRECTORY)

        await asyncio.gather(
            *(self._fill_entry(children, entry, max_depth, depth, on_change, progress, cancel) for entry in entries)
        )
        progress.dirs_completed += 1
        on_change()

    async def _fill_entry(
        self,
        children: list[Node],
        entry: _Entry,
        max_depth: int,
        depth: int,
        on_change: ChangeCallback,
        progress: ScanProgress,
        cancel: CancelToken | None,
    ) -> None:
        if _is_cancelled(cancel):
            return

        if entry.kind is NodeKind.DIRECTORY:
            # Placeholder first, so the live tree shows structure before contents.
            child = Node.directory(entry.path, entry.name)
            children.append(child)
            on_change()
            await self.fill(child, max_depth, depth + 1, on_change, progress, cancel)
            return

        try:
            size = await self.file_size(entry.path, cancel)
        except OSError:
            return
        if size is None:
            return
        children.append(Node.file(entry.path, entry.name, size))
        on_change()

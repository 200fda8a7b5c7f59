from __future__ import annotations

from dusk.config.schema import ScanConfig
from dusk.scan._base import resolve_root
from dusk.scan.cancel import CancelToken
from dusk.scan.estimator import fast_dir_size
from dusk.scan.limiter import ConcurrencyLimiter
from dusk.scan.walker import TreeWalker


def create_walker(config: ScanConfig, limiter: ConcurrencyLimiter | None = None) -> TreeWalker:
    """Build a walker from *config*.

    Pass *limiter* to share slots with other walkers; otherwise a new limiter
    sized by ``config.concurrency`` is created.
    """
    return TreeWalker(
        limiter if limiter is not None else ConcurrencyLimiter(config.concurrency),
        child_limit_depth=config.child_limit_depth,
        max_children=config.max_children,
        estimator_timeout=float(config.estimator_timeout_s),
    )


__all__ = [
    "CancelToken",
    "ConcurrencyLimiter",
    "TreeWalker",
    "create_walker",
    "fast_dir_size",
    "resolve_root",
]

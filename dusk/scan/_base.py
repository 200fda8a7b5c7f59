from __future__ import annotations

import os
import stat as statmod

import aiofiles.os
from result import Err, Ok

from dusk.models.enums import ScanErrorCode
from dusk.models.scan import RootResult, ScanError


def normalize_path(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


def node_name(path: str) -> str:
    return os.path.basename(path.rstrip(os.sep)) or path


async def resolve_root(path: str) -> RootResult:
    """Validate and resolve a scan root path.

    Returns ``Ok(absolute_path)`` or ``Err(ScanError)``.  The root itself may
    be a symlink to a directory; entries below it never are followed.
    """
    resolved = normalize_path(path)
    try:
        root_stat = await aiofiles.os.stat(resolved)
    except FileNotFoundError:
        return Err(ScanError(code=ScanErrorCode.NOT_FOUND, path=resolved, message="Path not found"))
    except PermissionError:
        return Err(ScanError(code=ScanErrorCode.ACCESS_DENIED, path=resolved, message="Permission denied"))
    except OSError as exc:
        return Err(
            ScanError(
                code=ScanErrorCode.ROOT_STAT_FAILED,
                path=resolved,
                message=f"Cannot access path: {exc}",
            )
        )
    if not statmod.S_ISDIR(root_stat.st_mode):
        return Err(ScanError(code=ScanErrorCode.NOT_DIRECTORY, path=resolved, message="Path is not a directory"))
    return Ok(resolved)

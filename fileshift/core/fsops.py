"""
Race-safe filesystem primitives.

Every primitive acts first and classifies the error afterwards. Nothing here
checks whether a target exists before writing it: exclusive create and
no-clobber rename fail atomically when the target is taken, which is how a
lost race against another process is detected.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .errors import FsErrorKind, classify_os_error

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024

_LINK_FALLBACK_KINDS = {
    FsErrorKind.CROSS_DEVICE,
    FsErrorKind.UNSUPPORTED,
    FsErrorKind.PERMISSION,
}


@dataclass(frozen=True)
class FsResult:
    """Outcome of a filesystem primitive: ok, or a classified failure."""

    ok: bool
    kind: Optional[FsErrorKind] = None
    error: Optional[OSError] = None

    def raise_error(self) -> None:
        if self.error is not None:
            raise self.error


def attempt(operation: Callable[..., object], *args: object) -> FsResult:
    """Run a filesystem operation, turning OSError into a classified result."""
    try:
        operation(*args)
    except OSError as e:
        return FsResult(ok=False, kind=classify_os_error(e), error=e)
    return FsResult(ok=True)


def exclusive_copy(source: Path, target: Path) -> None:
    """
    Copy ``source`` to ``target``, failing if ``target`` exists.

    The target is opened with exclusive create, so the existence check and
    the creation are one atomic step. A partially written target is removed
    before the error propagates.

    Raises:
        FileExistsError: If the target already exists
        OSError: Any other copy failure
    """
    with open(source, "rb") as src:
        with open(target, "xb") as dst:
            try:
                shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
            except BaseException:
                dst.close()
                remove_quietly(target)
                raise
    try:
        shutil.copystat(source, target)
    except OSError as e:
        logger.debug(f"Could not copy metadata to {target}: {e}")


def rename_noreplace(source: Path, target: Path) -> None:
    """
    Move ``source`` to ``target`` without ever replacing an existing target.

    On POSIX ``os.rename`` silently replaces, so the move is done with a hard
    link (which fails with EEXIST) followed by unlinking the source. When
    hard links are unavailable or the move crosses devices, falls back to an
    exclusive copy followed by unlinking the source.

    Raises:
        FileExistsError: If the target already exists
        OSError: Any other failure; the source is left in place
    """
    if os.name == "nt":
        # Windows rename refuses to replace an existing file
        os.rename(source, target)
        return

    result = attempt(os.link, source, target)
    if not result.ok:
        if result.kind not in _LINK_FALLBACK_KINDS:
            result.raise_error()
        logger.debug(f"Hard link unavailable ({result.kind}), copying {source} -> {target}")
        exclusive_copy(source, target)

    try:
        os.unlink(source)
    except OSError:
        remove_quietly(target)
        raise


def remove_quietly(path: Path) -> None:
    """Remove a file, logging instead of raising."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Could not remove {path}: {e}")

"""
Placement strategies built on the race-safe primitives.

A placement tries candidate paths in order and relies on the primitive to
claim a path atomically. Losing a race to another writer is an expected
outcome that moves on to the next candidate; everything else propagates.
"""

import logging
import os
import re
import time
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from ..core.errors import CapacityError, FsErrorKind, IntegrityError
from ..core.fsops import FsResult, attempt, exclusive_copy

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 100

_COUNTER_SUFFIX = re.compile(r"_(\d+)$")
_RESERVED_NAME = re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\..*)?$", re.IGNORECASE)


def is_reserved_name(name: str) -> bool:
    """True for Windows device names (``CON``, ``COM1.txt``, ...)."""
    return bool(_RESERVED_NAME.match(name))


def numbered_candidates(
    planned: Path, source_name: str, start: Optional[int] = None
) -> Iterator[Path]:
    """
    Yield the planned destination, then numbered alternatives.

    Numbering continues from any ``_N`` suffix already present in the planned
    name, so a destination resolved at plan time as ``report_1.txt`` retries
    as ``report_2.txt`` rather than starting over.

    Args:
        planned: Destination chosen by the planner
        source_name: Base name of the source file
        start: First counter to use after the planned path
    """
    yield planned

    source = Path(source_name)
    if start is None:
        match = _COUNTER_SUFFIX.search(planned.stem)
        start = int(match.group(1)) + 1 if match else 1

    counter = start
    while True:
        yield planned.parent / f"{source.stem}_{counter}{source.suffix}"
        counter += 1


def backup_candidates(backup_dir: Path, name: str) -> Iterator[Path]:
    """Yield timestamped backup paths for a displaced file."""
    stamp = int(time.time() * 1000)
    yield backup_dir / f"{stamp}_overwrite_{name}"
    counter = 1
    while True:
        yield backup_dir / f"{stamp}_{counter}_overwrite_{name}"
        counter += 1


def place_with_candidates(
    candidates: Iterable[Path],
    place: Callable[[Path], FsResult],
    max_attempts: int = MAX_ATTEMPTS,
    abandon_on_conflict: bool = False,
) -> Optional[Path]:
    """
    Try candidate paths until one is placed.

    ``place`` must be atomic with respect to the target: it either claims the
    path or reports ``FsErrorKind.EXISTS``. A lost race moves on to the next
    candidate; any other failure propagates immediately.

    Args:
        candidates: Target paths in preference order
        place: Placement function returning an FsResult
        max_attempts: Upper bound on the number of candidates tried
        abandon_on_conflict: Stop at the first lost race instead of renumbering

    Returns:
        The path that was placed, or None if abandoned on conflict

    Raises:
        CapacityError: If every attempt lost a race
    """
    last: Optional[Path] = None
    for attempt_number, candidate in enumerate(candidates, start=1):
        if attempt_number > max_attempts:
            break
        last = candidate

        result = place(candidate)
        if result.ok:
            return candidate

        if result.kind != FsErrorKind.EXISTS:
            result.raise_error()

        if abandon_on_conflict:
            return None

        logger.debug(f"Lost race for {candidate}, trying next name")

    raise CapacityError(
        f"Failed to place file after {max_attempts} attempts due to conflicts",
        details={"last_candidate": str(last) if last else None},
    )


class ExclusiveMover:
    """
    Move a file by exclusive copy then source delete.

    Preserves the single-copy invariant: if the source cannot be deleted after
    a successful copy, the copy is deleted again. A copy that cannot be
    cleaned up is reported as a critical duplicate rather than dropped.
    """

    def __init__(self, source: Path, diagnostics: List[str]):
        self.source = source
        self.diagnostics = diagnostics

    def __call__(self, target: Path) -> FsResult:
        if not os.path.lexists(self.source):
            logger.error(f"Source file {self.source} disappeared before placement")
            raise IntegrityError(
                f"Source file integrity check failed for {self.source}: "
                "file not accessible before placement attempt"
            )

        result = attempt(exclusive_copy, self.source, target)
        if not result.ok:
            return result

        try:
            os.unlink(self.source)
        except OSError as unlink_err:
            logger.error(f"Failed to unlink source {self.source} after copy, removing copy")
            try:
                os.unlink(target)
                logger.info(f"Cleaned up copied file {target}")
            except OSError as cleanup_err:
                critical = (
                    f"CRITICAL: Failed to cleanup copied file {target} after failed "
                    f"source unlink. Two copies exist; manual intervention required. "
                    f"Error: {cleanup_err}"
                )
                logger.critical(critical)
                self.diagnostics.append(critical)
            raise IntegrityError(
                f"Source file {self.source} unlink failed after successful copy: {unlink_err}"
            ) from unlink_err

        return result

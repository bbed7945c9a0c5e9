"""
Shared helpers for the command line tools.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

from ..core.types import Candidate

logger = logging.getLogger(__name__)


def format_bytes(size_bytes: int) -> str:
    """
    Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "2.50 GB")
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    return f"{size:.2f} {units[unit_index]}"


def load_candidates(paths: Iterable[Path]) -> Tuple[List[Candidate], List[str]]:
    """
    Describe the given files as candidates.

    Args:
        paths: Files named by the caller

    Returns:
        Candidates for regular files, and a message for every path that was
        not a readable regular file
    """
    candidates: List[Candidate] = []
    rejected: List[str] = []

    for path in paths:
        path = Path(path)
        if path.is_symlink():
            rejected.append(f"Symlinks not supported: {path}")
            continue
        if not path.is_file():
            rejected.append(f"Not a regular file: {path}")
            continue
        try:
            candidates.append(Candidate.from_path(path))
        except OSError as e:
            rejected.append(f"Cannot stat {path}: {e}")

    return candidates, rejected


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Setup logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )

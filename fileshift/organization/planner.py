"""
Planning of file placements.

The planner assigns a destination to every candidate and resolves collisions
that are knowable in memory (two candidates in the same batch landing on the
same path). It never looks at the disk: conflicts with files that already
exist are resolved at execution time, where the placement primitives can
detect them atomically.
"""

import logging
from pathlib import Path, PurePath
from typing import Dict, List, Optional, Sequence, Set

from ..core.collaborators import (
    Categorizer,
    ExtensionCategorizer,
    MetadataService,
    NullMetadataService,
)
from ..core.errors import SecurityError
from ..core.types import (
    ABORT_WARNING_PREFIX,
    BatchConflict,
    Candidate,
    ConflictStrategy,
    OperationPlan,
    PlannedMove,
    SkippedFile,
)

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_ERRORS = 10
SECONDS_PER_FILE = 0.05


def suffixed_path(path: Path, counter: int) -> Path:
    """Return ``path`` with ``_<counter>`` appended to its stem."""
    return path.parent / f"{path.stem}_{counter}{path.suffix}"


def _safe_subpath(subpath: str) -> PurePath:
    """Reject subpaths that would escape the category directory."""
    parts = PurePath(subpath)
    if parts.is_absolute() or parts.anchor:
        raise SecurityError(f"Metadata subpath must be relative: {subpath}")
    if ".." in parts.parts:
        raise SecurityError(f"Metadata subpath contains '..': {subpath}")
    return parts


class Planner:
    """Compute an OperationPlan for a batch of candidates."""

    def __init__(
        self,
        categorizer: Optional[Categorizer] = None,
        metadata_service: Optional[MetadataService] = None,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
    ):
        self.categorizer = categorizer or ExtensionCategorizer()
        self.metadata_service = metadata_service or NullMetadataService()
        self.max_consecutive_errors = max_consecutive_errors

    def plan(
        self,
        destination_root: Path,
        candidates: Sequence[Candidate],
        strategy: ConflictStrategy = ConflictStrategy.RENAME,
        use_content_analysis: bool = False,
    ) -> OperationPlan:
        """
        Plan destinations for a batch.

        Args:
            destination_root: Directory the categories are created under
            candidates: Files to place, in the order they will be executed
            strategy: Conflict resolution applied to every move
            use_content_analysis: Passed through to the categorizer

        Returns:
            The plan. Per-candidate failures are recorded as skipped files;
            planning stops after too many consecutive failures.
        """
        strategy = ConflictStrategy(strategy)
        destination_root = Path(destination_root)

        if not candidates:
            return OperationPlan()

        moves: List[PlannedMove] = []
        category_counts: Dict[str, int] = {}
        skipped: List[SkippedFile] = []
        conflicts: List[BatchConflict] = []
        warnings: List[str] = []

        planned: Set[Path] = set()
        consecutive_errors = 0
        processed = 0

        for candidate in candidates:
            if consecutive_errors >= self.max_consecutive_errors:
                remaining = len(candidates) - processed
                warning = (
                    f"{ABORT_WARNING_PREFIX} {self.max_consecutive_errors} "
                    f"consecutive errors. {remaining} files remaining unprocessed."
                )
                logger.warning(warning)
                warnings.append(warning)
                break

            processed += 1

            try:
                category = self.categorizer.get_category(
                    candidate.name, use_content_analysis, candidate.path
                )
                subpath = self.metadata_service.get_subpath(candidate.path, category)

                folder = destination_root / category
                if subpath:
                    folder = folder / _safe_subpath(subpath)
                destination = folder / candidate.name
            except Exception as e:
                logger.debug(f"Cannot plan {candidate.path}: {e}")
                skipped.append(SkippedFile(path=candidate.path, reason=str(e)))
                consecutive_errors += 1
                continue

            has_conflict = False
            if destination in planned:
                has_conflict = True
                conflicts.append(
                    BatchConflict(
                        file=candidate.path,
                        reason=f"Destination {destination} already claimed in batch",
                    )
                )
                if strategy == ConflictStrategy.RENAME:
                    base = destination
                    counter = 1
                    while destination in planned:
                        destination = suffixed_path(base, counter)
                        counter += 1
                    logger.debug(f"Batch collision for {candidate.path}, using {destination}")

            # Under skip only the first claim of a destination is reserved
            if not (has_conflict and strategy == ConflictStrategy.SKIP):
                planned.add(destination)

            category_counts[category] = category_counts.get(category, 0) + 1
            moves.append(
                PlannedMove(
                    source=candidate.path,
                    destination=destination,
                    category=category,
                    has_conflict=has_conflict,
                    conflict_resolution=strategy,
                )
            )
            consecutive_errors = 0

        return OperationPlan(
            moves=moves,
            category_counts=category_counts,
            skipped_files=skipped,
            conflicts=conflicts,
            warnings=warnings,
            estimated_duration=len(candidates) * SECONDS_PER_FILE,
        )

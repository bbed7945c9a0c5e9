"""
Execution of an OperationPlan.

Moves are placed one at a time, in plan order. After every successful
placement the batch manifest is re-persisted, so the undo log on disk always
matches the work that has actually completed.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..core.errors import FsErrorKind, PersistenceError
from ..core.fsops import attempt, rename_noreplace
from ..core.types import (
    ConflictStrategy,
    ExecutionOutcome,
    OperationPlan,
    OrganizeAction,
    PlacementOutcome,
    PlannedMove,
)
from ..rollback.manifest import BatchJournal, ManifestStore
from ..rollback.models import RollbackAction, RollbackActionType
from .placement import (
    MAX_ATTEMPTS,
    ExclusiveMover,
    backup_candidates,
    is_reserved_name,
    numbered_candidates,
    place_with_candidates,
)

logger = logging.getLogger(__name__)


class Executor:
    """Place the moves of a plan and journal each one for undo."""

    def __init__(
        self,
        store: ManifestStore,
        backup_dir: Path,
        max_attempts: int = MAX_ATTEMPTS,
        show_progress: bool = False,
    ):
        """
        Initialize the executor.

        Args:
            store: Where the batch manifest is persisted
            backup_dir: Where files displaced by overwrites are kept
            max_attempts: Bound on renumbering attempts per move
            show_progress: Render a progress bar while executing
        """
        self.store = store
        self.backup_dir = Path(backup_dir)
        self.max_attempts = max_attempts
        self.show_progress = show_progress

    def execute(
        self, plan: OperationPlan, description: str = "File organization"
    ) -> ExecutionOutcome:
        """
        Execute every move of ``plan``.

        A failing move is recorded in the error list and does not stop the
        batch.

        Args:
            plan: Plan from the planner
            description: Manifest description prefix

        Returns:
            Execution outcome with the manifest id of the batch
        """
        outcome = ExecutionOutcome(
            category_counts=dict(plan.category_counts), aborted=plan.aborted
        )
        journal = BatchJournal(self.store, description)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            disable=not self.show_progress,
        ) as progress:
            task = progress.add_task("Placing files...", total=len(plan.moves))

            for move in plan.moves:
                self._execute_move(move, outcome, journal)
                progress.advance(task)

        outcome.manifest_id = journal.manifest_id
        logger.info(
            f"Executed plan: {outcome.success_count} placed, "
            f"{outcome.error_count} errors"
        )
        return outcome

    def _execute_move(
        self, move: PlannedMove, outcome: ExecutionOutcome, journal: BatchJournal
    ) -> None:
        if move.has_conflict and move.conflict_resolution == ConflictStrategy.SKIP:
            logger.debug(f"Skipping {move.source}: batch conflict")
            return

        if is_reserved_name(move.source.name):
            message = f"Skipped reserved Windows filename: {move.source}"
            logger.warning(message)
            outcome.errors.append(message)
            return

        if is_reserved_name(move.destination.name):
            message = f"Skipped reserved Windows filename in destination: {move.destination}"
            logger.warning(message)
            outcome.errors.append(message)
            return

        if os.path.islink(move.source):
            message = f"Skipped symlink, links are not moved: {move.source}"
            logger.warning(message)
            outcome.errors.append(message)
            return

        try:
            placed = self.place(move, outcome.errors)
        except Exception as e:
            message = f"Failed to move {move.source}: {e}"
            logger.error(message)
            outcome.errors.append(message)
            return

        if placed.skipped:
            if placed.message:
                outcome.errors.append(placed.message)
            return

        outcome.successes.append(
            OrganizeAction(
                file=move.source.name,
                source=move.source,
                destination=placed.destination,
                category=move.category,
            )
        )
        try:
            journal.record(
                RollbackAction(
                    type=RollbackActionType.MOVE,
                    original_path=move.source,
                    current_path=placed.destination,
                    overwritten_backup_path=placed.overwritten_backup,
                )
            )
        except PersistenceError as e:
            message = f"Failed to update rollback manifest: {e}"
            logger.error(message)
            outcome.errors.append(message)

    def place(self, move: PlannedMove, diagnostics: List[str]) -> PlacementOutcome:
        """
        Place one file according to its conflict resolution.

        Args:
            move: Planned move
            diagnostics: Receives critical messages that must not be lost

        Returns:
            Where the file ended up, or a skipped outcome

        Raises:
            IntegrityError: Source vanished or a split copy was left behind
            CapacityError: Every renumbering attempt lost a race
            OSError: Unexpected filesystem failure
        """
        move.destination.parent.mkdir(parents=True, exist_ok=True)

        strategy = ConflictStrategy(move.conflict_resolution)
        if strategy in (ConflictStrategy.OVERWRITE, ConflictStrategy.OVERWRITE_IF_NEWER):
            return self._place_overwrite(
                move, strategy == ConflictStrategy.OVERWRITE_IF_NEWER, diagnostics
            )
        return self._place_exclusive(move, strategy, diagnostics)

    def _place_exclusive(
        self, move: PlannedMove, strategy: ConflictStrategy, diagnostics: List[str]
    ) -> PlacementOutcome:
        skip = strategy == ConflictStrategy.SKIP
        placed = place_with_candidates(
            numbered_candidates(move.destination, move.source.name),
            ExclusiveMover(move.source, diagnostics),
            max_attempts=self.max_attempts,
            abandon_on_conflict=skip,
        )

        if placed is None:
            message = f"Skipped {move.source}: destination {move.destination} already exists"
            logger.info(message)
            return PlacementOutcome(
                destination=move.destination, skipped=True, message=message
            )

        if placed != move.destination:
            logger.debug(f"Placed {move.source} at {placed} after conflicts")
        logger.info(f"Moved {move.source} -> {placed}")
        return PlacementOutcome(destination=placed)

    def _place_overwrite(
        self, move: PlannedMove, if_newer: bool, diagnostics: List[str]
    ) -> PlacementOutcome:
        source, target = move.source, move.destination

        if if_newer:
            try:
                dest_mtime = os.stat(target).st_mtime
            except FileNotFoundError:
                logger.debug(f"Destination {target} does not exist, proceeding with move")
            else:
                if os.stat(source).st_mtime < dest_mtime:
                    message = f"Skipped {source}: destination is newer"
                    logger.info(message)
                    return PlacementOutcome(
                        destination=target, skipped=True, message=message
                    )

        first = attempt(rename_noreplace, source, target)
        if first.ok:
            logger.info(f"Moved {source} -> {target}")
            return PlacementOutcome(destination=target)
        if first.kind != FsErrorKind.EXISTS:
            first.raise_error()

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup = place_with_candidates(
            backup_candidates(self.backup_dir, target.name),
            lambda candidate: attempt(rename_noreplace, target, candidate),
            max_attempts=self.max_attempts,
        )
        logger.info(f"Backed up existing {target} to {backup}")

        retry = attempt(rename_noreplace, source, target)
        if not retry.ok:
            self._restore_backup(backup, target, diagnostics)
            retry.raise_error()

        logger.info(f"Moved {source} -> {target} (overwrote, backup at {backup})")
        return PlacementOutcome(destination=target, overwritten_backup=backup)

    def _restore_backup(
        self, backup: Optional[Path], target: Path, diagnostics: List[str]
    ) -> None:
        if backup is None:
            return
        restored = attempt(rename_noreplace, backup, target)
        if restored.ok:
            logger.info(f"Restored {target} from backup after failed overwrite")
            return
        critical = (
            f"CRITICAL: Failed to restore backup for {target}. Original is kept at "
            f"{backup} and may need manual recovery. Error: {restored.error}"
        )
        logger.critical(critical)
        diagnostics.append(critical)

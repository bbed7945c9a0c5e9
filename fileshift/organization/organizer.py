"""
File organizer facade.

Wires planner, executor and manifest store together from Settings.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from ..config import Settings
from ..core.collaborators import Categorizer, MetadataService, RootPathValidator
from ..core.types import (
    Candidate,
    ConflictStrategy,
    ExecutionOutcome,
    OperationPlan,
    OrganizeAction,
)
from ..rollback.integrity import HmacSha256Integrity
from ..rollback.manifest import ManifestStore
from ..rollback.service import RollbackService
from .executor import Executor
from .planner import Planner

logger = logging.getLogger(__name__)


class FileOrganizer:
    """Plan, execute and undo file organization batches."""

    def __init__(
        self,
        settings: Settings,
        categorizer: Optional[Categorizer] = None,
        metadata_service: Optional[MetadataService] = None,
        show_progress: bool = False,
    ):
        """
        Initialize file organizer.

        Args:
            settings: Storage locations and limits
            categorizer: Category collaborator (extension table by default)
            metadata_service: Subpath collaborator (none by default)
            show_progress: Render a progress bar while executing
        """
        self.settings = settings
        self.store = ManifestStore(
            settings.resolved_manifest_dir,
            HmacSha256Integrity(settings.integrity_secret),
        )
        self.planner = Planner(
            categorizer,
            metadata_service,
            max_consecutive_errors=settings.max_consecutive_errors,
        )
        self.executor = Executor(
            self.store,
            settings.resolved_backup_dir,
            max_attempts=settings.max_attempts,
            show_progress=show_progress,
        )
        self.rollback_service = RollbackService(
            self.store, RootPathValidator(settings.allowed_roots)
        )

    def plan(
        self,
        destination_root: Path,
        candidates: Sequence[Candidate],
        strategy: ConflictStrategy = ConflictStrategy.RENAME,
        use_content_analysis: bool = False,
    ) -> OperationPlan:
        return self.planner.plan(
            destination_root, candidates, strategy, use_content_analysis
        )

    def organize(
        self,
        destination_root: Path,
        candidates: Sequence[Candidate],
        strategy: ConflictStrategy = ConflictStrategy.RENAME,
        dry_run: bool = False,
        use_content_analysis: bool = False,
    ) -> ExecutionOutcome:
        """
        Organize candidates into category folders under ``destination_root``.

        Args:
            destination_root: Target directory
            candidates: Files to place
            strategy: Conflict resolution strategy
            dry_run: If True, return the planned moves without touching disk
            use_content_analysis: Passed through to the categorizer

        Returns:
            Execution outcome; ``manifest_id`` identifies the undo log
        """
        logger.info(f"Starting organization ({'DRY RUN' if dry_run else 'LIVE'})")

        plan = self.plan(destination_root, candidates, strategy, use_content_analysis)

        if dry_run:
            return ExecutionOutcome(
                successes=[
                    OrganizeAction(
                        file=m.source.name,
                        source=m.source,
                        destination=m.destination,
                        category=m.category,
                    )
                    for m in plan.moves
                ],
                errors=list(plan.warnings),
                category_counts=dict(plan.category_counts),
                aborted=plan.aborted,
                dry_run=True,
            )

        return self.executor.execute(
            plan, description=f"Organization of {destination_root}"
        )

"""
Rollback of persisted manifests.

Actions are undone in reverse recording order. Each undo is a short sequence
of renames; the renames completed so far are tracked so that, if an action
fails halfway, they can be reverted again and the filesystem is returned to
the state it was in before that action's undo started.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..core.collaborators import PathValidator, RootPathValidator
from ..core.errors import (
    ConflictError,
    FsErrorKind,
    IntegrityError,
    PersistenceError,
    SecurityError,
    ValidationError,
)
from ..core.fsops import attempt, rename_noreplace
from .manifest import ManifestStore, is_valid_manifest_id
from .models import RollbackAction, RollbackActionType, RollbackResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UndoStep:
    """A completed rename performed while undoing an action."""

    source: Path
    target: Path
    label: str


class RollbackService:
    """Undo batches recorded in a ManifestStore."""

    def __init__(
        self, store: ManifestStore, path_validator: Optional[PathValidator] = None
    ):
        """
        Initialize the service.

        Args:
            store: Where manifests are read from
            path_validator: Decides which paths may be touched. The default
                has no roots and refuses every path.
        """
        self.store = store
        self.path_validator = path_validator or RootPathValidator()

    def latest_manifest_id(self) -> Optional[str]:
        """Id of the most recent readable manifest, if any."""
        listing = self.store.list_manifests()
        if not listing.manifests:
            return None
        return listing.manifests[0].id

    def rollback(self, manifest_id: str) -> RollbackResult:
        """
        Undo every action of a manifest, last action first.

        Args:
            manifest_id: UUID of the manifest to undo

        Returns:
            Counts of undone and failed actions with diagnostics. The manifest
            is deleted only if no action failed; otherwise it is rewritten to
            hold just the actions still to undo, so the rollback can be retried.
            Actions reversed by this run are listed in ``undone``.

        Raises:
            ValidationError: If the id is not a UUID (checked before any I/O)
            ManifestNotFoundError: If the manifest does not exist
            IntegrityError: If the manifest fails hash/signature verification
            PersistenceError: If the manifest cannot be parsed
        """
        if not is_valid_manifest_id(manifest_id):
            raise ValidationError(f"Invalid manifest ID format: {manifest_id}")

        manifest = self.store.load(manifest_id)
        logger.info(
            f"Rolling back manifest {manifest_id} ({len(manifest.actions)} actions)"
        )

        result = RollbackResult(manifest_id=manifest_id)
        pending: List[RollbackAction] = []

        for action in reversed(manifest.actions):
            steps: List[UndoStep] = []
            try:
                undone = self._undo(action, steps, result)
            except Exception as e:
                message = (
                    f"Failed to undo {action.type} for {action.original_path}: {e}"
                )
                logger.error(message)
                result.errors.append(message)
                self._compensate(steps, result)
                undone = False

            if undone:
                result.success += 1
                result.undone.append(action)
            else:
                result.failed += 1
                pending.append(action)

        self._finish(manifest_id, manifest.description, manifest.timestamp, pending, result)

        logger.info(
            f"Rollback of {manifest_id}: {result.success} restored, "
            f"{result.failed} failed"
        )
        return result

    def _finish(
        self,
        manifest_id: str,
        description: str,
        timestamp: int,
        pending: List[RollbackAction],
        result: RollbackResult,
    ) -> None:
        if result.failed == 0:
            try:
                self.store.delete(manifest_id)
            except PersistenceError as e:
                result.manifest_retained = True
                result.errors.append(
                    f"Rollback completed but manifest {manifest_id} could not be "
                    f"deleted: {e}"
                )
            return

        result.manifest_retained = True
        pending.reverse()
        try:
            self.store.save(manifest_id, description, pending, timestamp=timestamp)
        except PersistenceError as e:
            result.errors.append(
                f"Could not record remaining actions for {manifest_id}: {e}"
            )
        result.errors.append(
            f"Manifest {manifest_id} retained with {len(pending)} action(s) "
            f"still to undo; {len(result.undone)} undone action(s) were removed "
            "from it; rollback can be retried"
        )

    def _check_allowed(self, *paths: Optional[Path]) -> None:
        for path in paths:
            if path is not None and not self.path_validator.is_path_allowed(path):
                raise SecurityError(f"Path outside allowed roots: {path}")

    def _rename(
        self, source: Path, target: Path, label: str, steps: List[UndoStep]
    ) -> None:
        """No-clobber rename that records itself as a completed step."""
        result = attempt(rename_noreplace, source, target)
        if not result.ok:
            if result.kind == FsErrorKind.EXISTS:
                raise ConflictError(
                    f"Destination already exists, would overwrite: {target}"
                )
            result.raise_error()
        steps.append(UndoStep(source=source, target=target, label=label))

    def _undo(
        self, action: RollbackAction, steps: List[UndoStep], result: RollbackResult
    ) -> bool:
        """
        Undo one action.

        Returns:
            True if undone; False for failures that were handled here

        Raises:
            Exception: Any unexpected failure; the caller compensates ``steps``
        """
        action_type = RollbackActionType(action.type)

        if action_type in (RollbackActionType.MOVE, RollbackActionType.RENAME):
            return self._undo_move(action, steps, result)
        if action_type == RollbackActionType.COPY:
            return self._undo_copy(action, result)
        return self._undo_delete(action, steps, result)

    def _undo_move(
        self, action: RollbackAction, steps: List[UndoStep], result: RollbackResult
    ) -> bool:
        current = action.current_path
        original = action.original_path
        backup = action.overwritten_backup_path

        if current is None:
            raise ValidationError(f"No current path recorded for {original}")
        self._check_allowed(original, current, backup)

        if not os.path.lexists(current):
            raise IntegrityError(f"Current file not found: {current}")

        original.parent.mkdir(parents=True, exist_ok=True)
        self._rename(current, original, "move back", steps)
        logger.debug(f"Moved back: {current} -> {original}")

        if backup is None:
            return True

        restored = attempt(rename_noreplace, backup, current)
        if restored.ok:
            steps.append(UndoStep(source=backup, target=current, label="restore backup"))
            logger.debug(f"Restored overwritten file {backup} -> {current}")
            return True

        if restored.kind != FsErrorKind.NOT_FOUND:
            if restored.kind == FsErrorKind.EXISTS:
                raise ConflictError(
                    f"Cannot restore backup, destination occupied: {current}"
                )
            restored.raise_error()

        critical = f"CRITICAL: Original file backup missing: {backup}"
        logger.critical(critical)
        result.errors.append(critical)
        # Put the moved file back where it was so the action stays undoable
        self._compensate(steps, result)
        return False

    def _undo_copy(self, action: RollbackAction, result: RollbackResult) -> bool:
        current = action.current_path
        if current is None:
            raise ValidationError(f"No copy path recorded for {action.original_path}")
        self._check_allowed(current)

        removed = attempt(os.unlink, current)
        if removed.ok:
            logger.debug(f"Deleted copied file: {current}")
            return True
        if removed.kind == FsErrorKind.NOT_FOUND:
            result.warnings.append(
                f"File to un-copy not found, nothing to clean up: {current}"
            )
            return True
        removed.raise_error()
        return False

    def _undo_delete(
        self, action: RollbackAction, steps: List[UndoStep], result: RollbackResult
    ) -> bool:
        backup = action.backup_path
        original = action.original_path
        if backup is None:
            result.errors.append(
                f"Cannot restore deleted file {original}: no backup path recorded"
            )
            return False
        self._check_allowed(original, backup)

        original.parent.mkdir(parents=True, exist_ok=True)
        restored = attempt(rename_noreplace, backup, original)
        if restored.ok:
            steps.append(UndoStep(source=backup, target=original, label="restore deleted"))
            return True
        if restored.kind == FsErrorKind.NOT_FOUND:
            result.errors.append(
                f"Cannot restore deleted file {original}. Backup not found: {backup}"
            )
            return False
        if restored.kind == FsErrorKind.EXISTS:
            raise ConflictError(
                f"Cannot restore, destination already exists: {original}"
            )
        restored.raise_error()
        return False

    def _compensate(self, steps: List[UndoStep], result: RollbackResult) -> None:
        """Revert completed steps, newest first, best effort."""
        while steps:
            step = steps.pop()
            reverted = attempt(rename_noreplace, step.target, step.source)
            if reverted.ok:
                message = f"Recovered ({step.label}): {step.target} -> {step.source}"
                logger.warning(message)
                result.recovered.append(message)
            else:
                message = (
                    f"CRITICAL: Could not revert {step.label} "
                    f"{step.target} -> {step.source}: {reverted.error}"
                )
                logger.critical(message)
                result.errors.append(message)

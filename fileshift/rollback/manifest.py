"""
Manifest persistence.

One JSON file per manifest, named by its UUID, under an explicitly configured
directory. Writes go through a temporary file and ``os.replace`` so a crash
never leaves a half-written manifest behind.
"""

import json
import logging
import os
import re
import uuid
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError as ModelValidationError

from ..core.errors import (
    IntegrityError,
    ManifestNotFoundError,
    PersistenceError,
    ValidationError,
)
from .integrity import HmacSha256Integrity, ManifestIntegrity
from .models import (
    CorruptManifest,
    Manifest,
    ManifestListing,
    RollbackAction,
    now_ms,
)

logger = logging.getLogger(__name__)

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_valid_manifest_id(manifest_id: object) -> bool:
    """True if ``manifest_id`` is a syntactically valid UUID string."""
    return isinstance(manifest_id, str) and bool(_UUID_PATTERN.match(manifest_id))


class ManifestStore:
    """Create, list, load and delete manifests in one directory."""

    def __init__(
        self, manifest_dir: Path, integrity: Optional[ManifestIntegrity] = None
    ):
        """
        Initialize the store.

        Args:
            manifest_dir: Directory holding ``<uuid>.json`` manifests
            integrity: Hashing/signing implementation (HMAC-SHA256 by default)
        """
        self.manifest_dir = Path(manifest_dir)
        self.integrity = integrity or HmacSha256Integrity()

    def path_for(self, manifest_id: str) -> Path:
        if not is_valid_manifest_id(manifest_id):
            raise ValidationError(f"Invalid manifest ID format: {manifest_id}")
        return self.manifest_dir / f"{manifest_id.lower()}.json"

    def seal(self, manifest: Manifest) -> Manifest:
        """Fill in hash and signature."""
        hashed = manifest.model_copy(
            update={
                "hash": self.integrity.compute_hash(manifest.actions, manifest.timestamp),
                "signature": None,
            }
        )
        signature = self.integrity.compute_signature(hashed)
        return hashed.model_copy(update={"signature": signature})

    def create_manifest(
        self, description: str, actions: Sequence[RollbackAction]
    ) -> str:
        """
        Create and persist a new manifest.

        Args:
            description: Human-readable summary of the batch
            actions: Actions completed so far, in the order performed

        Returns:
            The new manifest id
        """
        manifest_id = str(uuid.uuid4())
        self.save(manifest_id, description, actions)
        logger.info(f"Created rollback manifest: {manifest_id} ({len(actions)} actions)")
        return manifest_id

    def save(
        self,
        manifest_id: str,
        description: str,
        actions: Sequence[RollbackAction],
        timestamp: Optional[int] = None,
    ) -> Manifest:
        """
        Persist (or replace) the manifest stored under ``manifest_id``.

        Raises:
            PersistenceError: If the manifest cannot be written
        """
        path = self.path_for(manifest_id)
        manifest = self.seal(
            Manifest(
                id=manifest_id,
                timestamp=timestamp if timestamp is not None else now_ms(),
                description=description,
                actions=list(actions),
            )
        )

        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            self.manifest_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(manifest.to_record(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise PersistenceError(
                f"Failed to write manifest {manifest_id}: {e}",
                details={"path": str(path)},
            ) from e

        logger.debug(f"Saved manifest {manifest_id} ({len(manifest.actions)} actions)")
        return manifest

    def _read(self, path: Path) -> Manifest:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to parse manifest {path.name}: {e}") from e

        try:
            return Manifest.model_validate(data)
        except ModelValidationError as e:
            raise PersistenceError(
                f"Failed to parse manifest {path.name}: {e.error_count()} invalid fields"
            ) from e

    def _verify(self, manifest: Manifest) -> None:
        verification = self.integrity.verify(manifest)
        if not verification.valid:
            raise IntegrityError(
                f"Manifest {manifest.id} failed verification: {verification.error}"
            )

    def load(self, manifest_id: str) -> Manifest:
        """
        Load and verify a manifest.

        Raises:
            ValidationError: If the id is not a UUID
            ManifestNotFoundError: If no manifest has that id
            PersistenceError: If the file cannot be parsed
            IntegrityError: If hash or signature do not match
        """
        path = self.path_for(manifest_id)
        try:
            manifest = self._read(path)
        except FileNotFoundError as e:
            raise ManifestNotFoundError(f"Manifest {manifest_id} not found") from e

        self._verify(manifest)
        if manifest.id.lower() != manifest_id.lower():
            raise IntegrityError(
                f"Manifest file {path.name} contains id {manifest.id}"
            )
        return manifest

    def list_manifests(self) -> ManifestListing:
        """
        List verified manifests, most recent first.

        Files that cannot be parsed or verified are reported in ``corrupt``
        instead of raising.
        """
        listing = ManifestListing()
        if not self.manifest_dir.is_dir():
            return listing

        manifests: List[Manifest] = []
        for path in sorted(self.manifest_dir.glob("*.json")):
            try:
                manifest = self._read(path)
                self._verify(manifest)
            except FileNotFoundError:
                # Deleted between listing and reading
                continue
            except (PersistenceError, IntegrityError) as e:
                logger.error(f"Failed to load rollback manifest {path.name}: {e}")
                listing.corrupt.append(CorruptManifest(file=path.name, reason=str(e)))
                continue
            manifests.append(manifest)

        listing.manifests = sorted(manifests, key=lambda m: m.timestamp, reverse=True)
        return listing

    def delete(self, manifest_id: str) -> None:
        """
        Delete a manifest.

        Raises:
            PersistenceError: If the file exists but cannot be removed
        """
        path = self.path_for(manifest_id)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"Manifest {manifest_id} already removed")
            return
        except OSError as e:
            raise PersistenceError(f"Failed to delete manifest {manifest_id}: {e}") from e
        logger.info(f"Deleted rollback manifest: {manifest_id}")


class BatchJournal:
    """
    Undo log for one running batch.

    Every recorded action immediately re-persists the manifest under the same
    id, so the file on disk always covers exactly the placements that have
    completed.
    """

    def __init__(self, store: ManifestStore, description: str):
        self.store = store
        self.description = description
        self.actions: List[RollbackAction] = []
        self.manifest_id: Optional[str] = None
        self.timestamp: Optional[int] = None

    def record(self, action: RollbackAction) -> None:
        """
        Append an action and persist the manifest.

        The action stays recorded in memory even if the write fails, so the
        next successful write includes it.

        Raises:
            PersistenceError: If the manifest cannot be written
        """
        self.actions.append(action)
        if self.manifest_id is None:
            self.manifest_id = str(uuid.uuid4())
            self.timestamp = now_ms()
            logger.info(f"Created rollback manifest: {self.manifest_id}")

        self.store.save(
            self.manifest_id,
            f"{self.description} ({len(self.actions)} files)",
            self.actions,
            timestamp=self.timestamp,
        )

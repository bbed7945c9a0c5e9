"""
Rollback module: persisted undo manifests and their reversal.
"""

from .integrity import HmacSha256Integrity, ManifestIntegrity
from .manifest import BatchJournal, ManifestStore, is_valid_manifest_id
from .models import (
    Manifest,
    ManifestListing,
    RollbackAction,
    RollbackActionType,
    RollbackResult,
)
from .service import RollbackService

__all__ = [
    "HmacSha256Integrity",
    "ManifestIntegrity",
    "BatchJournal",
    "ManifestStore",
    "is_valid_manifest_id",
    "Manifest",
    "ManifestListing",
    "RollbackAction",
    "RollbackActionType",
    "RollbackResult",
    "RollbackService",
]

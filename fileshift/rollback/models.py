"""
Undo log records.

A manifest is the persisted undo log of one batch. Its actions are kept in
the order they were performed; rollback consumes them in reverse.
"""

import time
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MANIFEST_VERSION = "1.0"


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class RollbackActionType(str, Enum):
    """Kind of operation an action reverses."""

    MOVE = "move"
    RENAME = "rename"
    COPY = "copy"
    DELETE = "delete"


class RollbackAction(BaseModel):
    """One reversible operation."""

    type: RollbackActionType = Field(description="Operation that was performed")
    original_path: Path = Field(description="Where the file was before")
    current_path: Optional[Path] = Field(
        default=None, description="Where the file is now (moves and copies)"
    )
    backup_path: Optional[Path] = Field(
        default=None, description="Where a deleted file is kept"
    )
    overwritten_backup_path: Optional[Path] = Field(
        default=None,
        description="Where the file displaced by an overwrite is kept",
    )
    timestamp: int = Field(default_factory=now_ms, description="Epoch milliseconds")

    model_config = ConfigDict(
        frozen=True,
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Manifest(BaseModel):
    """Persisted, integrity-checked undo log for one batch."""

    id: str
    timestamp: int = Field(default_factory=now_ms)
    description: str = ""
    actions: List[RollbackAction] = Field(default_factory=list)
    version: str = MANIFEST_VERSION
    hash: Optional[str] = None
    signature: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        """JSON-ready dict using the on-disk field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CorruptManifest(BaseModel):
    """A manifest file that could not be trusted."""

    file: str
    reason: str


class ManifestListing(BaseModel):
    """Readable manifests, newest first, plus the files that were not."""

    manifests: List[Manifest] = Field(default_factory=list)
    corrupt: List[CorruptManifest] = Field(default_factory=list)


class VerificationResult(BaseModel):
    """Outcome of checking a manifest's hash and signature."""

    valid: bool
    error: Optional[str] = None


class RollbackResult(BaseModel):
    """Outcome of undoing one manifest."""

    manifest_id: str
    success: int = 0
    failed: int = 0
    undone: List[RollbackAction] = Field(
        default_factory=list,
        description="Actions reversed by this run, in the order they were undone",
    )
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    recovered: List[str] = Field(default_factory=list)
    manifest_retained: bool = False

"""
Type definitions for planning and executing file placements.
"""

import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ABORT_WARNING_PREFIX = "Aborted after"


class ConflictStrategy(str, Enum):
    """How a destination collision is resolved."""

    RENAME = "rename"
    SKIP = "skip"
    OVERWRITE = "overwrite"
    OVERWRITE_IF_NEWER = "overwrite_if_newer"


class Candidate(BaseModel):
    """An input file to place. Owned by the caller."""

    path: Path = Field(description="Absolute path of the file")
    name: str = Field(description="Base name of the file")
    size: int = Field(default=0, description="Size in bytes")
    modified: Optional[datetime] = Field(
        default=None, description="Modification time"
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_path(cls, path: Path) -> "Candidate":
        """
        Build a candidate from a file on disk.

        Args:
            path: File to describe

        Returns:
            Candidate with size and modification time from a single stat
        """
        path = Path(os.path.abspath(path))
        st = path.stat()
        return cls(
            path=path,
            name=path.name,
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime),
        )


class PlannedMove(BaseModel):
    """A single placement decided by the planner."""

    source: Path
    destination: Path
    category: str
    has_conflict: bool = False
    conflict_resolution: ConflictStrategy = ConflictStrategy.RENAME

    model_config = ConfigDict(frozen=True)


class SkippedFile(BaseModel):
    """A candidate the planner could not place."""

    path: Path
    reason: str

    model_config = ConfigDict(frozen=True)


class BatchConflict(BaseModel):
    """A destination claimed twice within one batch."""

    file: Path
    reason: str

    model_config = ConfigDict(frozen=True)


class OperationPlan(BaseModel):
    """Ordered moves plus planning diagnostics."""

    moves: List[PlannedMove] = Field(default_factory=list)
    category_counts: Dict[str, int] = Field(default_factory=dict)
    skipped_files: List[SkippedFile] = Field(default_factory=list)
    conflicts: List[BatchConflict] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    estimated_duration: float = 0.0

    model_config = ConfigDict(frozen=True)

    @property
    def aborted(self) -> bool:
        """True when planning stopped early on repeated failures."""
        return any(w.startswith(ABORT_WARNING_PREFIX) for w in self.warnings)


class PlacementOutcome(BaseModel):
    """Result of placing one file."""

    destination: Path
    skipped: bool = False
    overwritten_backup: Optional[Path] = None
    message: Optional[str] = None


class OrganizeAction(BaseModel):
    """Forward record of a completed placement, for reporting."""

    file: str
    source: Path
    destination: Path
    category: str


class ExecutionOutcome(BaseModel):
    """Result of executing a plan."""

    successes: List[OrganizeAction] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    category_counts: Dict[str, int] = Field(default_factory=dict)
    aborted: bool = False
    dry_run: bool = False
    manifest_id: Optional[str] = None

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def error_count(self) -> int:
        return len(self.errors)

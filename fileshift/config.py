"""Engine configuration."""

import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from ``FILESHIFT_*`` environment variables."""

    # Storage roots
    state_dir: Path = Path.home() / ".fileshift"
    manifest_dir: Optional[Path] = None
    backup_dir: Optional[Path] = None

    # Rollback refuses to touch paths outside these roots (empty = refuse all)
    allowed_roots: List[Path] = Field(
        default_factory=lambda: [Path.home(), Path(tempfile.gettempdir())]
    )

    # HMAC key for manifest signatures; derived from the host when unset
    integrity_secret: Optional[str] = None

    # Limits
    max_attempts: int = 100
    max_consecutive_errors: int = 10

    @property
    def resolved_manifest_dir(self) -> Path:
        """Directory holding one JSON manifest per batch."""
        return self.manifest_dir or self.state_dir / "rollbacks"

    @property
    def resolved_backup_dir(self) -> Path:
        """Directory holding files displaced by overwrites."""
        return self.backup_dir or self.state_dir / "backups"

    model_config = ConfigDict(
        env_prefix="FILESHIFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

"""
Pytest configuration and fixtures for fileshift tests.
"""

import os
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

from fileshift.config import Settings
from fileshift.core.collaborators import RootPathValidator
from fileshift.core.types import Candidate
from fileshift.organization.executor import Executor
from fileshift.organization.planner import Planner
from fileshift.rollback.integrity import HmacSha256Integrity
from fileshift.rollback.manifest import ManifestStore
from fileshift.rollback.service import RollbackService

TEST_SECRET = "fileshift-test-secret"


def make_file(
    path: Path, content: str = "content", mtime: Optional[float] = None
) -> Path:
    """Create a file (and its parents) with the given content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def candidates_for(paths: Iterable[Path]) -> List[Candidate]:
    return [Candidate.from_path(p) for p in paths]


def listing(root: Path) -> List[str]:
    """Relative paths of all files under root, sorted."""
    return sorted(
        str(p.relative_to(root)).replace(os.sep, "/")
        for p in root.rglob("*")
        if p.is_file()
    )


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def dest_dir(tmp_path: Path) -> Path:
    path = tmp_path / "organized"
    path.mkdir()
    return path


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    return tmp_path / "state" / "backups"


@pytest.fixture
def store(tmp_path: Path) -> ManifestStore:
    return ManifestStore(
        tmp_path / "state" / "rollbacks", HmacSha256Integrity(TEST_SECRET)
    )


@pytest.fixture
def planner() -> Planner:
    return Planner()


@pytest.fixture
def executor(store: ManifestStore, backup_dir: Path) -> Executor:
    return Executor(store, backup_dir)


@pytest.fixture
def rollback_service(store: ManifestStore, tmp_path: Path) -> RollbackService:
    return RollbackService(store, RootPathValidator([tmp_path]))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(state_dir=tmp_path / "state", integrity_secret=TEST_SECRET)

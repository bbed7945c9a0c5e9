"""Tests for candidate-based placement."""

import errno
import itertools
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import make_file
from fileshift.core.errors import CapacityError, FsErrorKind, IntegrityError
from fileshift.core.fsops import FsResult
from fileshift.organization.placement import (
    ExclusiveMover,
    backup_candidates,
    is_reserved_name,
    numbered_candidates,
    place_with_candidates,
)


class TestReservedNames:
    """Tests for is_reserved_name()."""

    @pytest.mark.parametrize("name", ["CON", "con.txt", "NUL", "COM1.log", "lpt9", "AUX.tar.gz"])
    def test_reserved(self, name):
        """Test Windows device names with and without extensions."""
        assert is_reserved_name(name)

    @pytest.mark.parametrize("name", ["CONSOLE.txt", "COM10", "report.txt", "aux_data.csv", "xNUL"])
    def test_not_reserved(self, name):
        """Test names that only resemble device names."""
        assert not is_reserved_name(name)


class TestNumberedCandidates:
    """Tests for numbered_candidates()."""

    def test_planned_path_first(self, tmp_path):
        """Test that numbering starts after the planned path."""
        planned = tmp_path / "Documents" / "report.txt"

        names = [p.name for p in itertools.islice(numbered_candidates(planned, "report.txt"), 4)]

        assert names == ["report.txt", "report_1.txt", "report_2.txt", "report_3.txt"]

    def test_continues_from_planned_counter(self, tmp_path):
        """Test that a plan-time suffix is not reused."""
        planned = tmp_path / "Documents" / "report_1.txt"

        names = [p.name for p in itertools.islice(numbered_candidates(planned, "report.txt"), 3)]

        assert names == ["report_1.txt", "report_2.txt", "report_3.txt"]

    def test_same_directory(self, tmp_path):
        """Test that numbered candidates stay in the planned folder."""
        planned = tmp_path / "Images" / "photo.jpg"

        for candidate in itertools.islice(numbered_candidates(planned, "photo.jpg"), 5):
            assert candidate.parent == planned.parent


class TestBackupCandidates:
    """Tests for backup_candidates()."""

    def test_names(self, tmp_path):
        """Test the timestamped backup naming scheme."""
        first, second = itertools.islice(backup_candidates(tmp_path, "a.txt"), 2)

        stamp = first.name.split("_", 1)[0]
        assert stamp.isdigit()
        assert first.name == f"{stamp}_overwrite_a.txt"
        assert second.name == f"{stamp}_1_overwrite_a.txt"
        assert first.parent == tmp_path


class TestPlaceWithCandidates:
    """Tests for place_with_candidates()."""

    def _occupied(self, taken):
        def place(candidate: Path) -> FsResult:
            if candidate.name in taken:
                return FsResult(ok=False, kind=FsErrorKind.EXISTS, error=FileExistsError())
            return FsResult(ok=True)

        return place

    def test_first_free_candidate(self, tmp_path):
        """Test that taken candidates are passed over."""
        placed = place_with_candidates(
            numbered_candidates(tmp_path / "a.txt", "a.txt"),
            self._occupied({"a.txt", "a_1.txt"}),
        )

        assert placed == tmp_path / "a_2.txt"

    def test_abandon_on_conflict(self, tmp_path):
        """Test that abandoning stops at the first conflict."""
        placed = place_with_candidates(
            numbered_candidates(tmp_path / "a.txt", "a.txt"),
            self._occupied({"a.txt"}),
            abandon_on_conflict=True,
        )

        assert placed is None

    def test_capacity_exhausted(self, tmp_path):
        """Test that a bounded number of attempts is made."""
        calls = []

        def always_taken(candidate):
            calls.append(candidate)
            return FsResult(ok=False, kind=FsErrorKind.EXISTS, error=FileExistsError())

        with pytest.raises(CapacityError) as exc_info:
            place_with_candidates(
                numbered_candidates(tmp_path / "a.txt", "a.txt"),
                always_taken,
                max_attempts=5,
            )

        assert len(calls) == 5
        assert "after 5 attempts" in str(exc_info.value)

    def test_other_errors_propagate(self, tmp_path):
        """Test that a non-conflict failure is not retried."""
        calls = []

        def denied(candidate):
            calls.append(candidate)
            error = PermissionError(errno.EACCES, "Permission denied")
            return FsResult(ok=False, kind=FsErrorKind.PERMISSION, error=error)

        with pytest.raises(PermissionError):
            place_with_candidates(numbered_candidates(tmp_path / "a.txt", "a.txt"), denied)

        assert len(calls) == 1


class TestExclusiveMover:
    """Tests for ExclusiveMover."""

    def test_moves(self, tmp_path):
        """Test a move to a free target."""
        source = make_file(tmp_path / "src" / "a.txt", "alpha")
        target = tmp_path / "a.txt"

        result = ExclusiveMover(source, [])(target)

        assert result.ok
        assert not source.exists()
        assert target.read_text() == "alpha"

    def test_existing_target_reported(self, tmp_path):
        """Test that a taken target is reported, not replaced."""
        source = make_file(tmp_path / "src" / "a.txt", "alpha")
        target = make_file(tmp_path / "a.txt", "bravo")

        result = ExclusiveMover(source, [])(target)

        assert result.kind == FsErrorKind.EXISTS
        assert source.read_text() == "alpha"
        assert target.read_text() == "bravo"

    def test_vanished_source(self, tmp_path):
        """Test that a missing source is an integrity failure."""
        with pytest.raises(IntegrityError):
            ExclusiveMover(tmp_path / "gone.txt", [])(tmp_path / "a.txt")

    def test_source_unlink_failure_removes_copy(self, tmp_path):
        """Test that at most one copy survives a failed source delete."""
        source = make_file(tmp_path / "src" / "a.txt", "alpha")
        target = tmp_path / "a.txt"
        real_unlink = os.unlink

        def unlink(path, *args, **kwargs):
            if Path(path) == source:
                raise PermissionError(errno.EACCES, "Permission denied")
            return real_unlink(path, *args, **kwargs)

        diagnostics = []
        with patch("fileshift.organization.placement.os.unlink", side_effect=unlink):
            with pytest.raises(IntegrityError):
                ExclusiveMover(source, diagnostics)(target)

        assert source.exists()
        assert not target.exists()
        assert diagnostics == []

    def test_cleanup_failure_is_critical(self, tmp_path):
        """Test that an unremovable duplicate is reported as critical."""
        source = make_file(tmp_path / "src" / "a.txt", "alpha")
        target = tmp_path / "a.txt"

        diagnostics = []
        with patch(
            "fileshift.organization.placement.os.unlink",
            side_effect=PermissionError(errno.EACCES, "Permission denied"),
        ):
            with pytest.raises(IntegrityError):
                ExclusiveMover(source, diagnostics)(target)

        assert len(diagnostics) == 1
        assert diagnostics[0].startswith("CRITICAL")
        assert str(target) in diagnostics[0]

"""Tests for error classification and the error hierarchy."""

import errno

import pytest

from fileshift.core.errors import (
    CapacityError,
    ConflictError,
    FileShiftError,
    FsErrorKind,
    ManifestNotFoundError,
    PersistenceError,
    classify_os_error,
)


class TestClassifyOsError:
    """Tests for classify_os_error."""

    @pytest.mark.parametrize(
        "code,kind",
        [
            (errno.EEXIST, FsErrorKind.EXISTS),
            (errno.ENOENT, FsErrorKind.NOT_FOUND),
            (errno.EXDEV, FsErrorKind.CROSS_DEVICE),
            (errno.EACCES, FsErrorKind.PERMISSION),
            (errno.EPERM, FsErrorKind.PERMISSION),
            (errno.EIO, FsErrorKind.OTHER),
        ],
    )
    def test_errno_mapping(self, code, kind):
        """Test that errno values map onto the closed kind set."""
        assert classify_os_error(OSError(code, "boom")) == kind

    def test_subclass_mapping(self):
        """Test that OSError subclasses are classified without errno."""
        assert classify_os_error(FileExistsError()) == FsErrorKind.EXISTS
        assert classify_os_error(FileNotFoundError()) == FsErrorKind.NOT_FOUND

    def test_missing_errno(self):
        """Test that an OSError without errno is OTHER."""
        assert classify_os_error(OSError("no errno")) == FsErrorKind.OTHER


class TestFileShiftError:
    """Tests for the error hierarchy."""

    def test_default_codes(self):
        """Test that each subclass carries its own code."""
        assert ConflictError("x").code == "CONFLICT"
        assert CapacityError("x").code == "CAPACITY"
        assert ManifestNotFoundError("x").code == "MANIFEST_NOT_FOUND"

    def test_not_found_is_persistence_error(self):
        """Test that a missing manifest is a persistence failure."""
        assert issubclass(ManifestNotFoundError, PersistenceError)
        assert issubclass(PersistenceError, FileShiftError)

    def test_format_includes_details_and_suggestion(self):
        """Test human-readable formatting."""
        error = FileShiftError(
            "Disk full",
            code="CUSTOM",
            details={"path": "/tmp/x"},
            suggestion="Free some space",
        )

        text = error.format()

        assert error.code == "CUSTOM"
        assert text.startswith("Error: Disk full")
        assert '"path": "/tmp/x"' in text
        assert "Suggestion: Free some space" in text

    def test_format_message_only(self):
        """Test formatting without optional context."""
        assert FileShiftError("Nope").format() == "Error: Nope"

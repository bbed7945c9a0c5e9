"""
Error taxonomy for file placement and rollback.

Filesystem conditions that are expected during placement (target already
exists, source vanished, cross-device rename) are classified into a closed
``FsErrorKind`` set so callers branch on the kind instead of sniffing errno
values. Exceptions are reserved for conditions the caller must handle.
"""

import errno
import json
from enum import Enum
from typing import Any, Dict, Optional


class FsErrorKind(str, Enum):
    """Classified outcome of a failed filesystem primitive."""

    EXISTS = "exists"
    NOT_FOUND = "not_found"
    CROSS_DEVICE = "cross_device"
    PERMISSION = "permission"
    UNSUPPORTED = "unsupported"
    OTHER = "other"


_ERRNO_KINDS = {
    errno.EEXIST: FsErrorKind.EXISTS,
    errno.ENOTEMPTY: FsErrorKind.EXISTS,
    errno.ENOENT: FsErrorKind.NOT_FOUND,
    errno.EXDEV: FsErrorKind.CROSS_DEVICE,
    errno.EACCES: FsErrorKind.PERMISSION,
    errno.EPERM: FsErrorKind.PERMISSION,
    errno.ENOTSUP: FsErrorKind.UNSUPPORTED,
    errno.EOPNOTSUPP: FsErrorKind.UNSUPPORTED,
    errno.EMLINK: FsErrorKind.UNSUPPORTED,
}


def classify_os_error(error: OSError) -> FsErrorKind:
    """
    Map an OSError onto a FsErrorKind.

    Args:
        error: Error raised by a filesystem call

    Returns:
        The matching kind, ``OTHER`` when the error is not one the engine
        knows how to recover from
    """
    if isinstance(error, FileExistsError):
        return FsErrorKind.EXISTS
    if isinstance(error, FileNotFoundError):
        return FsErrorKind.NOT_FOUND
    if error.errno is None:
        return FsErrorKind.OTHER
    return _ERRNO_KINDS.get(error.errno, FsErrorKind.OTHER)


class FileShiftError(Exception):
    """Base error carrying a stable code and optional context."""

    code = "FILESHIFT_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details
        self.suggestion = suggestion

    def format(self) -> str:
        """Render the error for a human reader."""
        text = f"Error: {self.message}"
        if self.details:
            text += f"\n\nDetails:\n{json.dumps(self.details, indent=2, default=str)}"
        if self.suggestion:
            text += f"\n\nSuggestion: {self.suggestion}"
        return text


class ConflictError(FileShiftError):
    """Lost a race to a concurrent writer."""

    code = "CONFLICT"


class IntegrityError(FileShiftError):
    """Source vanished, a split copy could not be reconciled, or a manifest failed verification."""

    code = "INTEGRITY"


class CapacityError(FileShiftError):
    """Retry budget exhausted."""

    code = "CAPACITY"


class SecurityError(FileShiftError):
    """Reserved filename or path outside the allowed roots."""

    code = "SECURITY"


class PersistenceError(FileShiftError):
    """Manifest could not be written or read."""

    code = "PERSISTENCE"


class ManifestNotFoundError(PersistenceError):
    """No manifest is stored under the requested id."""

    code = "MANIFEST_NOT_FOUND"


class ValidationError(FileShiftError):
    """Input rejected before any storage or filesystem access."""

    code = "VALIDATION"

"""
Interfaces to the collaborators the engine consumes, with simple defaults.

Classification, metadata extraction and path policy live outside the engine.
The defaults here are enough to run the engine on their own: an
extension-based categorizer, a metadata service that never nests, and a
root-containment path validator that refuses everything when it has no
roots.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Others"

CATEGORY_EXTENSIONS: Dict[str, Tuple[str, ...]] = {
    "Executables": (".exe", ".msi", ".bat", ".cmd", ".sh"),
    "Videos": (".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v"),
    "Documents": (".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt", ".md", ".tex"),
    "Presentations": (".ppt", ".pptx", ".odp", ".key"),
    "Spreadsheets": (".xls", ".xlsx", ".csv", ".ods"),
    "Images": (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".svg", ".ico", ".webp"),
    "Audio": (".mp3", ".flac", ".aac", ".ogg", ".wma", ".m4a", ".wav"),
    "Archives": (".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".xz"),
    "Code": (
        ".py",
        ".js",
        ".ts",
        ".java",
        ".cpp",
        ".c",
        ".html",
        ".css",
        ".php",
        ".rb",
        ".go",
        ".json",
    ),
    "Installers": (".dmg", ".pkg", ".deb", ".rpm", ".apk"),
    "Ebooks": (".epub", ".mobi", ".azw", ".azw3"),
    "Fonts": (".ttf", ".otf", ".woff", ".woff2"),
    "Logs": (".log",),
}


class Categorizer(Protocol):
    """Assigns a category label to a file."""

    def get_category(
        self,
        name: str,
        use_content_analysis: bool = False,
        path: Optional[Path] = None,
    ) -> str: ...


class MetadataService(Protocol):
    """Supplies an optional nested subpath (e.g. ``2024/02``) for a file."""

    def get_subpath(self, path: Path, category: str) -> Optional[str]: ...


class PathValidator(Protocol):
    """Decides whether the engine may mutate a path."""

    def is_path_allowed(self, path: Path) -> bool: ...


class ExtensionCategorizer:
    """Categorize by file extension, first matching category wins."""

    def __init__(self, categories: Optional[Dict[str, Iterable[str]]] = None):
        table = categories if categories is not None else CATEGORY_EXTENSIONS
        self._by_extension: Dict[str, str] = {}
        for category, extensions in table.items():
            for ext in extensions:
                self._by_extension.setdefault(ext.lower(), category)

    def get_category(
        self,
        name: str,
        use_content_analysis: bool = False,
        path: Optional[Path] = None,
    ) -> str:
        if use_content_analysis:
            logger.debug(f"Content analysis not available, using extension for {name}")
        return self._by_extension.get(Path(name).suffix.lower(), DEFAULT_CATEGORY)


class NullMetadataService:
    """Metadata service that never adds a subpath."""

    def get_subpath(self, path: Path, category: str) -> Optional[str]:
        return None


class RootPathValidator:
    """
    Allow paths contained in one of the configured roots.

    With no roots configured every path is refused.
    """

    def __init__(self, allowed_roots: Iterable[Path] = ()):
        self.allowed_roots: List[str] = [
            os.path.normcase(os.path.realpath(root)) for root in allowed_roots
        ]

    def is_path_allowed(self, path: Path) -> bool:
        if not self.allowed_roots:
            logger.warning(f"No allowed roots configured, refusing {path}")
            return False

        try:
            candidate = os.path.normcase(os.path.realpath(path))
        except (OSError, ValueError):
            return False

        for root in self.allowed_roots:
            try:
                if os.path.commonpath([root, candidate]) == root:
                    return True
            except ValueError:
                # Different drives on Windows
                continue
        return False

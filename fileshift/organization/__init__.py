"""
Organization module for file placement operations.

This module plans destinations for a batch of files and places them with
act-then-classify primitives (exclusive create, no-clobber rename), recording
every completed move for rollback.
"""

from ..core.collaborators import (
    Categorizer,
    ExtensionCategorizer,
    MetadataService,
    NullMetadataService,
    PathValidator,
    RootPathValidator,
)
from .executor import Executor
from .organizer import FileOrganizer
from .planner import Planner

__all__ = [
    "Categorizer",
    "ExtensionCategorizer",
    "MetadataService",
    "NullMetadataService",
    "PathValidator",
    "RootPathValidator",
    "Executor",
    "FileOrganizer",
    "Planner",
]

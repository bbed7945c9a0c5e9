"""
Shared utilities for fileshift command line tools.
"""

from .fs_utils import format_bytes, load_candidates, setup_logging

__all__ = [
    "format_bytes",
    "load_candidates",
    "setup_logging",
]

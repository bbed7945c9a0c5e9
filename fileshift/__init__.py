"""
fileshift - transactional file placement with undo.

Plans where files should go, places them with race-safe primitives, and
records every completed move in an integrity-checked manifest that can be
rolled back.
"""

__version__ = "0.1.0"

"""Error types raised by the ingestion pipeline."""
from __future__ import annotations


class InsightsError(Exception):
    """Base class for ingestion pipeline errors."""


class ScanRootError(InsightsError):
    """Raised when an existing scan root cannot be listed."""

    def __init__(self, root: str, reason: str):
        super().__init__(f"Cannot scan {root}: {reason}")
        self.root = root


class ParseError(InsightsError):
    """Raised when a log file cannot be read or decoded as a whole."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot parse {path}: {reason}")
        self.path = path


class CacheError(InsightsError):
    """Raised when the file cache backend fails or returns a corrupt row."""

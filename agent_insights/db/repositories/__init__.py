"""Repository package for database access."""

from .file_cache import SqliteFileCacheRepository

__all__ = [
    "SqliteFileCacheRepository",
]

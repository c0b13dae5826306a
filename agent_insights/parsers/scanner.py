"""Recursive log file discovery with filesystem metadata."""
from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from agent_insights.date_utils import file_timestamps
from agent_insights.errors import ScanRootError
from agent_insights.models import FileMetadata

logger = logging.getLogger("agent_insights.scanner")


def _file_metadata(path: Path) -> FileMetadata | None:
    try:
        stats = os.lstat(path)
    except OSError as exc:
        logger.debug("Skipping %s: %s", path, exc)
        return None
    if not stat.S_ISREG(stats.st_mode):
        return None
    created_at, modified_at = file_timestamps(stats)
    return FileMetadata(
        path=str(path),
        created_at=created_at,
        modified_at=modified_at,
        size=stats.st_size,
    )


def scan_files(root: Path, extension: str) -> list[FileMetadata]:
    """Collect metadata for every regular file under ``root`` with ``extension``.

    Symlinks are neither followed nor reported. A missing root yields an empty
    list; an existing root that cannot be listed raises ScanRootError.
    """
    root = Path(root)
    suffix = "." + extension.lstrip(".")
    files: list[FileMetadata] = []

    try:
        root_stats = os.stat(root)
    except FileNotFoundError:
        logger.warning("Directory does not exist: %s", root)
        return files
    except OSError as exc:
        raise ScanRootError(str(root), str(exc)) from exc
    if not stat.S_ISDIR(root_stats.st_mode):
        raise ScanRootError(str(root), "not a directory")

    root_errors: list[OSError] = []

    def _on_error(exc: OSError) -> None:
        if exc.filename is not None and Path(exc.filename) == root:
            root_errors.append(exc)
        else:
            logger.debug("Skipping unreadable directory %s: %s", exc.filename, exc)

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_error, followlinks=False):
        for name in filenames:
            if not name.endswith(suffix):
                continue
            metadata = _file_metadata(Path(dirpath) / name)
            if metadata is not None:
                files.append(metadata)

    if root_errors:
        raise ScanRootError(str(root), str(root_errors[0]))
    return files


def scan_json_files(root: Path) -> list[FileMetadata]:
    return scan_files(root, "json")


def scan_jsonl_files(root: Path) -> list[FileMetadata]:
    return scan_files(root, "jsonl")

"""Workspace scanning: enumerate files eligible for indexing."""

import os
from pathlib import Path
from typing import Iterable, Optional

from ..logging_config import get_logger

logger = get_logger(__name__)


def _normalize_extensions(extensions: Iterable[str]) -> set[str]:
    return {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions}


def scan_workspace(
    root: Path | str,
    extensions: Iterable[str],
    ignore_dirs: Iterable[str],
    skip_paths: Iterable[Path | str] = (),
    max_file_size: Optional[int] = None,
) -> list[Path]:
    """Recursively collect files to index under ``root``.

    Directories named in ``ignore_dirs`` (and any directory in ``skip_paths``,
    such as the index storage directory) are pruned before descending, so
    their contents are never visited. A directory that cannot be read is
    logged and skipped; the rest of the scan continues.

    Args:
        root: Workspace root directory
        extensions: File extensions to include (e.g. [".py", ".md"])
        ignore_dirs: Directory names never descended into
        skip_paths: Absolute directories never descended into
        max_file_size: Skip files larger than this many bytes

    Returns:
        Absolute file paths in depth-first, name-sorted order
    """
    root = Path(root).resolve()
    allowed = _normalize_extensions(extensions)
    denied = set(ignore_dirs)
    skipped = {Path(p).resolve() for p in skip_paths}
    files: list[Path] = []

    def scan(directory: Path) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.error("Error scanning directory %s: %s", directory, e)
            return

        for entry in entries:
            full_path = Path(entry.path)
            try:
                if entry.is_dir(follow_symlinks=False):
                    if entry.name in denied or full_path in skipped:
                        continue
                    scan(full_path)
                elif entry.is_file():
                    if full_path.suffix.lower() not in allowed:
                        continue
                    if max_file_size is not None and entry.stat().st_size > max_file_size:
                        logger.debug("Skipping large file %s", full_path)
                        continue
                    files.append(full_path)
            except OSError as e:
                logger.error("Error reading entry %s: %s", full_path, e)

    scan(root)
    return files


def is_eligible(
    path: Path | str,
    root: Path | str,
    extensions: Iterable[str],
    ignore_dirs: Iterable[str],
    skip_paths: Iterable[Path | str] = (),
    max_file_size: Optional[int] = None,
) -> bool:
    """Apply the scanner's rules to a single path (used for watcher events).

    The size limit only applies to a file that still exists; a deleted
    path is judged on its name.
    """
    path = Path(path)
    root = Path(root)
    try:
        rel_path = path.relative_to(root)
    except ValueError:
        return False

    if path.suffix.lower() not in _normalize_extensions(extensions):
        return False

    denied = set(ignore_dirs)
    if any(part in denied for part in rel_path.parts[:-1]):
        return False

    for skip in skip_paths:
        skip = Path(skip)
        if path == skip or skip in path.parents:
            return False

    if max_file_size is not None and path.is_file():
        return path.stat().st_size <= max_file_size
    return True

"""Suffix-based rename and delete primitives used to stage file moves.

Each operation walks a directory with an explicit ignore list.  Ignored
names are matched exactly against entry names at every level that is
visited, and ignored directories are never descended into.  Failures are
raised immediately as :class:`IOTransferError`; sequencing compensating
actions is left to the caller.
"""

from __future__ import annotations

import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Iterable

from services.update.errors import IOTransferError


_LOGGER = logging.getLogger(__name__)


class SearchDepth(str, Enum):
    TOP_LEVEL = "top_level"
    RECURSIVE = "recursive"


def add_suffix_to_all(
    directory: Path,
    suffix: str,
    depth: SearchDepth = SearchDepth.RECURSIVE,
    ignored: Iterable[str] | None = None,
) -> list[Path]:
    """Append ``suffix`` to every entry below ``directory``.

    Returns the renamed paths (with their new names) in the order they were
    renamed.
    """

    ignored_names = frozenset(ignored or ())
    renamed: list[Path] = []
    for entry in _list_entries(directory):
        if entry.name in ignored_names:
            _LOGGER.debug("Leaving ignored entry %s untouched", entry)
            continue
        if depth is SearchDepth.RECURSIVE and _is_directory(entry):
            renamed.extend(add_suffix_to_all(entry, suffix, depth, ignored_names))
        renamed.append(_rename(entry, entry.name + suffix))
    return renamed


def remove_suffix_from_all(
    directory: Path,
    suffix: str,
    depth: SearchDepth = SearchDepth.RECURSIVE,
) -> list[Path]:
    """Strip ``suffix`` from every entry that currently ends with it."""

    restored: list[Path] = []
    for entry in _list_entries(directory):
        if depth is SearchDepth.RECURSIVE and _is_directory(entry):
            restored.extend(remove_suffix_from_all(entry, suffix, depth))
        if entry.name.endswith(suffix) and len(entry.name) > len(suffix):
            restored.append(_rename(entry, entry.name[: -len(suffix)]))
    return restored


def delete_all_with_suffix(
    directory: Path,
    suffix: str,
    depth: SearchDepth = SearchDepth.RECURSIVE,
) -> list[Path]:
    """Delete every entry whose name ends with ``suffix``."""

    deleted: list[Path] = []
    for entry in _list_entries(directory):
        if entry.name.endswith(suffix):
            _delete(entry)
            deleted.append(entry)
        elif depth is SearchDepth.RECURSIVE and _is_directory(entry):
            deleted.extend(delete_all_with_suffix(entry, suffix, depth))
    return deleted


def delete_all_without_suffix(
    directory: Path,
    suffix: str,
    depth: SearchDepth = SearchDepth.RECURSIVE,
    ignored: Iterable[str] | None = None,
) -> list[Path]:
    """Delete every entry whose name does not end with ``suffix``."""

    ignored_names = frozenset(ignored or ())
    deleted: list[Path] = []
    for entry in _list_entries(directory):
        if entry.name in ignored_names:
            continue
        if not entry.name.endswith(suffix):
            _delete(entry)
            deleted.append(entry)
        elif depth is SearchDepth.RECURSIVE and _is_directory(entry):
            deleted.extend(delete_all_without_suffix(entry, suffix, depth, ignored_names))
    return deleted


def _list_entries(directory: Path) -> list[Path]:
    try:
        return sorted(directory.iterdir())
    except OSError as exc:
        raise IOTransferError(f"Failed to list {directory}: {exc}") from exc


def _is_directory(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


def _rename(entry: Path, new_name: str) -> Path:
    target = entry.with_name(new_name)
    if target.exists() or target.is_symlink():
        raise IOTransferError(f"Cannot rename {entry.name} to {new_name}: target already exists")
    try:
        entry.rename(target)
    except OSError as exc:
        raise IOTransferError(f"Failed to rename {entry} to {new_name}: {exc}") from exc
    _LOGGER.debug("Renamed %s to %s", entry, new_name)
    return target


def _delete(entry: Path) -> None:
    try:
        if _is_directory(entry):
            shutil.rmtree(entry)
        else:
            entry.unlink()
    except OSError as exc:
        raise IOTransferError(f"Failed to delete {entry}: {exc}") from exc
    _LOGGER.debug("Deleted %s", entry)


__all__ = [
    "SearchDepth",
    "add_suffix_to_all",
    "delete_all_with_suffix",
    "delete_all_without_suffix",
    "remove_suffix_from_all",
]

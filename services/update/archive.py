"""Archive handling helpers for the update service."""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Iterable

from services.update import constants
from services.update.errors import IOTransferError


_LOGGER = logging.getLogger(__name__)


def extract_archive(
    archive_path: Path,
    target_dir: Path,
    ignored: Iterable[str] | None = None,
) -> list[Path]:
    """Extract ``archive_path`` into ``target_dir`` and return the written paths.

    Members that would land inside an ignored top-level entry are skipped and
    existing files are never overwritten.
    """

    _LOGGER.info("Extracting %s into %s", archive_path.name, target_dir)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            return extract_zip_safely(archive, target_dir, frozenset(ignored or ()))
    except IOTransferError:
        raise
    except (OSError, zipfile.BadZipFile, zlib.error, EOFError) as exc:
        raise IOTransferError(f"Failed to extract update archive: {exc}") from exc


def extract_zip_safely(
    archive: zipfile.ZipFile,
    target_dir: Path,
    ignored: frozenset[str] = frozenset(),
) -> list[Path]:
    root = target_dir.resolve()
    total_bytes = 0
    processed_entries = 0
    written: list[Path] = []
    for member in archive.infolist():
        name = member.filename
        if not name:
            continue
        processed_entries += 1
        if processed_entries > constants.MAX_ARCHIVE_ENTRIES:
            _LOGGER.error(
                "Archive entry count %s exceeded limit %s",
                processed_entries,
                constants.MAX_ARCHIVE_ENTRIES,
            )
            raise IOTransferError("Update archive contained too many entries")
        path = PurePosixPath(name.replace("\\", "/"))
        if path.is_absolute() or (path.parts and path.parts[0].endswith(":")):
            raise IOTransferError("Update archive contained an absolute path entry")
        destination = (root / Path(*path.parts)).resolve()
        try:
            destination.relative_to(root)
        except ValueError:
            raise IOTransferError("Update archive contained an unsafe relative path")
        if path.parts and path.parts[0] in ignored:
            _LOGGER.debug("Skipping archive member %s inside an ignored directory", name)
            continue
        if member.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        if member.file_size > constants.MAX_ARCHIVE_FILE_SIZE:
            _LOGGER.error(
                "Archive member %s exceeded file size limit (%s > %s)",
                name,
                member.file_size,
                constants.MAX_ARCHIVE_FILE_SIZE,
            )
            raise IOTransferError("Update archive contained an oversized file")
        if member.compress_size == 0 and member.file_size > 0:
            _LOGGER.error("Archive member %s reported zero compression size", name)
            raise IOTransferError("Update archive contained a suspiciously compressed file")
        if (
            member.compress_size > 0
            and member.file_size > member.compress_size * constants.MAX_COMPRESSION_RATIO
        ):
            _LOGGER.error(
                "Archive member %s exceeded compression ratio limit (%s > %s)",
                name,
                member.file_size,
                member.compress_size * constants.MAX_COMPRESSION_RATIO,
            )
            raise IOTransferError("Update archive exceeded safe compression ratio")
        total_bytes += member.file_size
        if total_bytes > constants.MAX_ARCHIVE_TOTAL_BYTES:
            _LOGGER.error(
                "Archive expanded to %s bytes which exceeds limit %s",
                total_bytes,
                constants.MAX_ARCHIVE_TOTAL_BYTES,
            )
            raise IOTransferError("Update archive expanded beyond safe limits")
        if destination.exists():
            raise IOTransferError(f"The file '{destination}' already exists.")
        destination.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as source, destination.open("xb") as target:
            written.append(destination)
            shutil.copyfileobj(source, target)
        _LOGGER.debug("Extracted archive member %s to %s", name, destination)

    _LOGGER.info(
        "Extracted %s entries totalling %s bytes", processed_entries, total_bytes
    )
    return written


__all__ = ["extract_archive", "extract_zip_safely"]
